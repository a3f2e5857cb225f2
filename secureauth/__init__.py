"""Password login with rotating remember-me cookies."""

__version__ = "1.0.0"
