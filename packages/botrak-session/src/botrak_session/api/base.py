"""Protocol for the backend calls the session core depends on."""

from __future__ import annotations

from typing import Any, Protocol

from botrak_session.models import Membership


class SessionApi(Protocol):
    """Auth, logout and organization-listing endpoints."""

    async def login(self, email: str, password: str) -> dict[str, Any]: ...
    async def logout(self) -> None: ...
    async def my_organizations(self) -> list[Membership]: ...
    async def forgot_password(self, email: str) -> str | None: ...
