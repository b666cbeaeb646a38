"""BotrakClient tests over httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from botrak_session.api.client import BotrakClient
from botrak_session.api.token import TokenSlot
from botrak_session.errors import ApiError, InvalidCredentials, NetworkError, SessionExpired

BASE_URL = "https://botrak.test/api"


def _client(handler, tokens: TokenSlot | None = None) -> BotrakClient:
    return BotrakClient(
        tokens or TokenSlot(),
        base_url=BASE_URL,
        timeout_seconds=5,
        transport=httpx.MockTransport(handler),
    )


class TestLogin:
    @pytest.mark.asyncio
    async def test_success_returns_user_and_sends_mobile_flag(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"success": True, "user": {"id": 1, "authentication_token": "tok"}},
            )

        user = await _client(handler, TokenSlot("stale")).login("a@b.c", "pw")

        assert user == {"id": 1, "authentication_token": "tok"}
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/api/log_in"
        assert json.loads(request.content) == {
            "user": {"email": "a@b.c", "password": "pw"},
            "from_mobile": True,
        }
        assert "token" not in request.headers

    @pytest.mark.asyncio
    async def test_unsuccessful_body_is_invalid_credentials(self):
        def handler(request):
            return httpx.Response(200, json={"success": False, "error": "Invalid Email or password."})

        with pytest.raises(InvalidCredentials) as exc_info:
            await _client(handler).login("a@b.c", "bad")
        assert exc_info.value.message == "Invalid Email or password."

    @pytest.mark.asyncio
    async def test_401_with_error_text_is_invalid_credentials(self):
        def handler(request):
            return httpx.Response(401, json={"error": "Invalid Email or password."})

        with pytest.raises(InvalidCredentials):
            await _client(handler).login("a@b.c", "bad")

    @pytest.mark.asyncio
    async def test_server_error_without_text_is_network_error(self):
        def handler(request):
            return httpx.Response(500, text="<html>oops</html>")

        with pytest.raises(NetworkError) as exc_info:
            await _client(handler).login("a@b.c", "pw")
        assert exc_info.value.message == "Network Error"

    @pytest.mark.asyncio
    async def test_missing_token_is_api_error(self):
        def handler(request):
            return httpx.Response(200, json={"success": True, "user": {"id": 1}})

        with pytest.raises(ApiError):
            await _client(handler).login("a@b.c", "pw")


class TestTransportFailures:
    @pytest.mark.asyncio
    async def test_timeout_is_network_error(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(NetworkError) as exc_info:
            await _client(handler).login("a@b.c", "pw")
        assert exc_info.value.message == "Request timed out"

    @pytest.mark.asyncio
    async def test_connection_failure_is_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(NetworkError):
            await _client(handler, TokenSlot("tok")).my_organizations()


class TestOrganizations:
    @pytest.mark.asyncio
    async def test_token_is_read_per_request(self):
        headers: list[str | None] = []

        def handler(request):
            headers.append(request.headers.get("token"))
            return httpx.Response(200, json={"my_organizations": []})

        tokens = TokenSlot("first")
        client = _client(handler, tokens)
        await client.my_organizations()
        tokens.set("second")
        await client.my_organizations()
        tokens.clear()
        await client.my_organizations()

        assert headers == ["first", "second", None]

    @pytest.mark.asyncio
    async def test_listing_parses_memberships_and_skips_malformed(self):
        def handler(request):
            assert request.url.path == "/api/users/my_organizations"
            return httpx.Response(
                200,
                json={
                    "my_organizations": [
                        {"organization_id": 1, "organization_name": "Acme", "role": "employee", "is_plan_active": 1},
                        {"organization_name": "No id"},
                        "garbage",
                        {"organization_id": "2", "name": "Beta", "role_names": ["approver"], "is_plan_active": False},
                    ]
                },
            )

        memberships = await _client(handler, TokenSlot("tok")).my_organizations()

        assert [m.organization_id for m in memberships] == [1, "2"]
        assert memberships[0].plan_active
        assert memberships[1].organization_name == "Beta"
        assert memberships[1].role == "approver"
        assert not memberships[1].plan_active

    @pytest.mark.asyncio
    async def test_missing_listing_is_empty(self):
        def handler(request):
            return httpx.Response(200, json={"success": True})

        assert await _client(handler, TokenSlot("tok")).my_organizations() == []

    @pytest.mark.asyncio
    async def test_401_is_session_expired(self):
        def handler(request):
            return httpx.Response(401, json={"error": "expired"})

        with pytest.raises(SessionExpired):
            await _client(handler, TokenSlot("tok")).my_organizations()

    @pytest.mark.asyncio
    async def test_other_errors_are_api_errors(self):
        def handler(request):
            return httpx.Response(503, json={"message": ["down", "for maintenance"]})

        with pytest.raises(ApiError) as exc_info:
            await _client(handler, TokenSlot("tok")).my_organizations()
        assert exc_info.value.status_code == 503
        assert exc_info.value.message == "down, for maintenance"


class TestLogoutAndReset:
    @pytest.mark.asyncio
    async def test_logout_posts_with_token(self):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"success": True})

        await _client(handler, TokenSlot("tok")).logout()

        assert seen[0].method == "POST"
        assert seen[0].url.path == "/api/logout"
        assert seen[0].headers["token"] == "tok"

    @pytest.mark.asyncio
    async def test_forgot_password_returns_server_message(self):
        def handler(request):
            assert request.url.path == "/api/password"
            assert json.loads(request.content) == {"user": {"email": "a@b.c"}}
            return httpx.Response(200, json={"message": "Check your inbox"})

        assert await _client(handler).forgot_password("a@b.c") == "Check your inbox"

    @pytest.mark.asyncio
    async def test_forgot_password_failure(self):
        def handler(request):
            return httpx.Response(422, json={})

        with pytest.raises(ApiError) as exc_info:
            await _client(handler).forgot_password("nobody@b.c")
        assert exc_info.value.message == "Failed to send reset email"
