"""Async HTTP client for the Botrak backend endpoints used by the session core."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from botrak_session.api import endpoints
from botrak_session.api.token import TokenProvider
from botrak_session.config import ApiSettings
from botrak_session.errors import ApiError, InvalidCredentials, NetworkError, SessionExpired
from botrak_session.models import Membership

log = structlog.get_logger(__name__)

_DEFAULTS = ApiSettings()


def _json_body(resp: httpx.Response) -> dict[str, Any]:
    """Decode a JSON object body; anything else reads as empty."""
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _error_text(body: dict[str, Any]) -> str | None:
    error = body.get("error") or body.get("message")
    if not error:
        return None
    if isinstance(error, list):
        return ", ".join(str(e) for e in error)
    return str(error)


class BotrakClient:
    """Calls the Botrak REST API.

    The auth header is read from the injected :class:`TokenProvider` on every
    request, so a login or logout elsewhere is picked up immediately.
    Transport failures and timeouts surface as :class:`NetworkError`, and a
    401 on an authenticated call as :class:`SessionExpired`.
    """

    def __init__(
        self,
        tokens: TokenProvider,
        base_url: str = _DEFAULTS.base_url,
        timeout_seconds: float = _DEFAULTS.timeout_seconds,
        from_mobile: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._tokens = tokens
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._from_mobile = from_mobile
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: ApiSettings,
        tokens: TokenProvider,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> BotrakClient:
        return cls(
            tokens,
            base_url=settings.base_url,
            timeout_seconds=settings.timeout_seconds,
            from_mobile=settings.from_mobile,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> dict[str, Any]:
        """Authenticate and return the backend ``user`` object.

        The returned mapping carries ``authentication_token``.
        """
        payload: dict[str, Any] = {"user": {"email": email, "password": password}}
        if self._from_mobile:
            payload["from_mobile"] = True

        resp = await self._send("POST", endpoints.LOGIN, json=payload, authenticated=False)
        body = _json_body(resp)

        if resp.is_error:
            message = _error_text(body)
            log.info("login_rejected", status=resp.status_code, has_message=message is not None)
            if message:
                raise InvalidCredentials(message)
            raise NetworkError()

        if not body.get("success"):
            raise InvalidCredentials(_error_text(body))

        user = body.get("user")
        if not isinstance(user, dict) or not user.get("authentication_token"):
            raise ApiError("Login response did not include a user token", resp.status_code)
        return user

    async def logout(self) -> None:
        await self._call("POST", endpoints.LOGOUT, json={})

    async def my_organizations(self) -> list[Membership]:
        body = await self._call("GET", endpoints.MY_ORGANIZATIONS)
        raw = body.get("my_organizations")
        if not isinstance(raw, list):
            log.warning("organizations_missing", keys=sorted(body))
            return []

        memberships: list[Membership] = []
        for entry in raw:
            if not isinstance(entry, dict) or entry.get("organization_id") is None:
                log.warning("organization_entry_skipped", entry_type=type(entry).__name__)
                continue
            memberships.append(Membership.from_payload(entry))
        log.debug("organizations_listed", count=len(memberships))
        return memberships

    async def forgot_password(self, email: str) -> str | None:
        """Request a password-reset email. Returns the server message, if any."""
        resp = await self._send(
            "POST", endpoints.FORGOT_PASSWORD, json={"user": {"email": email}}, authenticated=False
        )
        body = _json_body(resp)
        if resp.is_error:
            raise ApiError(_error_text(body) or "Failed to send reset email", resp.status_code)
        return _error_text(body)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _headers(self, authenticated: bool) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        token = self._tokens.get_token() if authenticated else None
        if token:
            headers[endpoints.TOKEN_HEADER] = token
        return headers

    async def _send(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        authenticated: bool = True,
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                return await client.request(
                    method, path, json=json, headers=self._headers(authenticated)
                )
        except httpx.TimeoutException as exc:
            log.warning("request_timeout", method=method, path=path)
            raise NetworkError("Request timed out") from exc
        except httpx.HTTPError as exc:
            log.warning("request_failed", method=method, path=path, error=str(exc))
            raise NetworkError() from exc

    async def _call(
        self, method: str, path: str, *, json: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        resp = await self._send(method, path, json=json)
        if resp.status_code == 401:
            raise SessionExpired()
        body = _json_body(resp)
        if resp.is_error:
            raise ApiError(_error_text(body), resp.status_code)
        return body
