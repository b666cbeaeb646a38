"""Persistence layer: SQLite-backed durable session storage."""

from __future__ import annotations

from botrak_session.persistence.db import DatabaseManager
from botrak_session.persistence.migrations import run_migrations
from botrak_session.persistence.store import (
    ACTIVE_ORG_KEY,
    USER_KEY,
    InMemoryBackend,
    KeyValueBackend,
    SessionStore,
    SQLiteBackend,
)

__all__ = [
    "ACTIVE_ORG_KEY",
    "USER_KEY",
    "DatabaseManager",
    "InMemoryBackend",
    "KeyValueBackend",
    "SQLiteBackend",
    "SessionStore",
    "run_migrations",
]
