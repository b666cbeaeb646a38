"""Tests for settings and the session-manager factory."""

import httpx
import pytest
from pydantic import ValidationError

from botrak_session import SessionState, open_session_manager
from botrak_session.config import ApiSettings, BotrakSettings, LoggingSettings, StorageSettings


def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/log_in"):
        return httpx.Response(
            200,
            json={
                "success": True,
                "user": {
                    "id": 5,
                    "authentication_token": "tok",
                    "role_names": ["employee"],
                    "organization_id": 1,
                    "organization_name": "Acme",
                },
            },
        )
    if request.url.path.endswith("/users/my_organizations"):
        assert request.headers["token"] == "tok"
        return httpx.Response(
            200,
            json={"my_organizations": [{"organization_id": 1, "organization_name": "Acme", "is_plan_active": True}]},
        )
    return httpx.Response(200, json={"success": True})


def test_settings_read_nested_environment(monkeypatch) -> None:
    monkeypatch.setenv("BOTRAK_API__BASE_URL", "https://staging.example/api")
    monkeypatch.setenv("BOTRAK_STORAGE__BACKEND", "memory")
    monkeypatch.setenv("BOTRAK_LOGGING__FORMAT", "json")

    settings = BotrakSettings(_env_file=None)

    assert settings.api.base_url == "https://staging.example/api"
    assert settings.api.timeout_seconds == 30.0
    assert settings.storage.backend == "memory"
    assert settings.logging.format == "json"


def test_unknown_backend_is_rejected() -> None:
    with pytest.raises(ValidationError):
        StorageSettings(backend="redis")


def test_unknown_backend_in_environment_is_rejected(monkeypatch) -> None:
    monkeypatch.setenv("BOTRAK_STORAGE__BACKEND", "redis")
    with pytest.raises(ValidationError):
        BotrakSettings(_env_file=None)


def test_unknown_log_format_is_rejected() -> None:
    with pytest.raises(ValidationError):
        LoggingSettings(format="xml")


@pytest.mark.asyncio
async def test_memory_backend_starts_unauthenticated() -> None:
    settings = BotrakSettings(_env_file=None, storage=StorageSettings(backend="memory"))
    manager = await open_session_manager(settings, transport=httpx.MockTransport(_handler))
    result = await manager.restore()
    assert result.ok
    assert manager.state is SessionState.UNAUTHENTICATED


@pytest.mark.asyncio
async def test_sqlite_session_survives_restart(tmp_path) -> None:
    settings = BotrakSettings(
        _env_file=None,
        api=ApiSettings(base_url="https://botrak.test/api"),
        storage=StorageSettings(backend="sqlite", db_path=tmp_path / "session.db"),
    )
    transport = httpx.MockTransport(_handler)

    manager = await open_session_manager(settings, transport=transport)
    result = await manager.login("a@b.c", "pw")
    assert result.ok
    await manager.aclose()

    restarted = await open_session_manager(settings, transport=transport)
    try:
        result = await restarted.restore()
        assert result.ok
        assert restarted.state is SessionState.AUTHENTICATED
        assert restarted.user.id == 5
        assert restarted.dashboard_context().organization_name == "Acme"
    finally:
        await restarted.aclose()
