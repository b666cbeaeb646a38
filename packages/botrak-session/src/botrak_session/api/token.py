"""The current-auth-token slot shared by the session manager and the API client."""

from __future__ import annotations

from typing import Protocol


class TokenProvider(Protocol):
    """Read side: the API client asks for the token on every request."""

    def get_token(self) -> str | None: ...


class TokenSlot:
    """Single mutable token holder.

    The session manager sets it on login/restore and clears it on logout;
    nothing else writes to it.
    """

    def __init__(self, token: str | None = None) -> None:
        self._token = token

    def get_token(self) -> str | None:
        return self._token

    def set(self, token: str | None) -> None:
        self._token = token or None

    def clear(self) -> None:
        self._token = None

    def __bool__(self) -> bool:
        return self._token is not None
