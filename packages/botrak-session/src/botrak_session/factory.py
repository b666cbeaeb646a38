"""Wire a SessionManager from settings."""

from __future__ import annotations

import httpx
import structlog

from botrak_session.api.client import BotrakClient
from botrak_session.api.token import TokenSlot
from botrak_session.config import BotrakSettings
from botrak_session.persistence.db import DatabaseManager
from botrak_session.persistence.store import (
    InMemoryBackend,
    KeyValueBackend,
    SessionStore,
    SQLiteBackend,
)
from botrak_session.session import SessionManager

logger = structlog.get_logger()


async def open_session_manager(
    settings: BotrakSettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SessionManager:
    """Build the token slot, API client, store and manager.

    Args:
        settings: Defaults to ``BotrakSettings()`` (environment + ``.env``).
        transport: Optional httpx transport, e.g. ``httpx.MockTransport``.

    Returns:
        A manager in the ``UNAUTHENTICATED`` state; call ``restore()`` next.
    """
    settings = settings or BotrakSettings()
    tokens = TokenSlot()
    api = BotrakClient.from_settings(settings.api, tokens, transport=transport)

    backend: KeyValueBackend
    if settings.storage.backend == "memory":
        backend = InMemoryBackend()
    else:
        db = DatabaseManager(settings.storage.db_path)
        await db.initialize()
        backend = SQLiteBackend(db)

    logger.info(
        "session_manager_opened",
        storage=settings.storage.backend,
        base_url=settings.api.base_url,
    )
    return SessionManager(api, SessionStore(backend), tokens)
