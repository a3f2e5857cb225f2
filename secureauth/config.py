import os
from pathlib import Path
from dotenv import load_dotenv
load_dotenv()  # reads .env in the project root


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    DATA_DIR = Path(os.getenv("DATA_DIR", "./data")).expanduser().resolve()
    DATA_DIR.mkdir(parents=True, exist_ok=True)

    PUBLIC_BASE = os.getenv("PUBLIC_BASE", "http://localhost:8000")

    AUTH_DB_URL = os.getenv(
        "AUTH_DB_URL", f"sqlite:///{DATA_DIR / 'auth.sqlite3'}"
    )
    SESSION_SECRET = os.getenv("SESSION_SECRET", "dev-session-secret")
    SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "secureauth_session")
    SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", str(60 * 60 * 12)))

    # ------------------------------------------------------------------
    # Remember-me cookie ------------------------------------------------

    AUTOLOGIN_COOKIE_NAME = os.getenv("AUTOLOGIN_COOKIE_NAME", "autologin")
    # 60 days
    AUTOLOGIN_COOKIE_EXPIRE = int(os.getenv("AUTOLOGIN_COOKIE_EXPIRE", "5184000"))
    AUTOLOGIN_COOKIE_ENCRYPT = _flag("AUTOLOGIN_COOKIE_ENCRYPT", "1")
    AUTOLOGIN_HASH_ALGORITHM = os.getenv("AUTOLOGIN_HASH_ALGORITHM", "sha256")
    AUTOLOGIN_PURGE_ON_LOGIN = _flag("AUTOLOGIN_PURGE_ON_LOGIN", "1")

    # ------------------------------------------------------------------
    # User records ------------------------------------------------------

    IDENTIFICATION_FIELD = os.getenv("IDENTIFICATION_FIELD", "username")
    PRIMARY_KEY = os.getenv("PRIMARY_KEY", "id")
    PASSWORD_FIELD = os.getenv("PASSWORD_FIELD", "hashed_password")
    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

    INITIAL_USERNAME = os.getenv("INITIAL_USERNAME", "")
    INITIAL_PASSWORD = os.getenv("INITIAL_PASSWORD", "")

    def resolve_data_path(self, path: str | os.PathLike[str]) -> Path:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.DATA_DIR / candidate
        return candidate.expanduser().resolve()

    @property
    def cookie_secure(self) -> bool:
        return self.PUBLIC_BASE.startswith("https://")

settings = Settings()
