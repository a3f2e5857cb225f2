"""Per-agent state holders used by the authentication core."""
from __future__ import annotations

from typing import Any, Dict, MutableMapping, Optional, Protocol


class SessionState(Protocol):
    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def destroy(self) -> None: ...


class MappingSessionState:
    """Session state stored in a mutable mapping.

    Starlette's ``request.session`` is such a mapping; its contents are
    serialized into the signed session cookie by ``SessionMiddleware``, so
    only JSON-compatible values may be stored.
    """

    def __init__(self, data: MutableMapping[str, Any]) -> None:
        self._data = data

    def get(self, key: str) -> Any:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def destroy(self) -> None:
        self._data.clear()


class MemorySessionState(MappingSessionState):
    """Standalone session state, for scripts and tests."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self.data: Dict[str, Any] = dict(initial or {})
        super().__init__(self.data)


def starlette_session_state(request) -> MappingSessionState:
    """Wrap ``request.session``; requires ``SessionMiddleware``."""

    return MappingSessionState(request.session)


__all__ = [
    "MappingSessionState",
    "MemorySessionState",
    "SessionState",
    "starlette_session_state",
]
