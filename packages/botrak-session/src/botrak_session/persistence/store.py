"""Durable session storage: the user record and the active organization.

Both records live under fixed keys of a key-value backend. Writes always
serialize whole records; ``save_session`` and ``clear`` touch both keys in a
single backend transaction.
"""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Protocol

import structlog

from botrak_session.errors import StorageCorrupt
from botrak_session.models import ActiveOrganization, User
from botrak_session.persistence.db import DatabaseManager

log = structlog.get_logger(__name__)

USER_KEY = "user_session"
ACTIVE_ORG_KEY = "active_org"


class KeyValueBackend(Protocol):
    """Backend interface for durable string storage."""

    async def get(self, key: str) -> str | None: ...
    async def write(self, puts: dict[str, str], deletes: tuple[str, ...] = ()) -> None: ...
    async def close(self) -> None: ...


class InMemoryBackend:
    """Dict-backed storage for tests and ephemeral sessions."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def write(self, puts: dict[str, str], deletes: tuple[str, ...] = ()) -> None:
        staged = dict(self.data)
        staged.update(puts)
        for key in deletes:
            staged.pop(key, None)
        self.data = staged

    async def close(self) -> None:
        return None


_UPSERT_SQL = """
    INSERT INTO session_kv (key, value, updated_at)
    VALUES (?, ?, datetime('now'))
    ON CONFLICT(key) DO UPDATE SET
        value      = excluded.value,
        updated_at = excluded.updated_at
"""

_DELETE_SQL = "DELETE FROM session_kv WHERE key = ?"

_SELECT_SQL = "SELECT value FROM session_kv WHERE key = ?"


class SQLiteBackend:
    """SQLite-backed storage scoped to one app installation."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get(self, key: str) -> str | None:
        rows = await self._db.execute(_SELECT_SQL, (key,))
        return rows[0]["value"] if rows else None

    async def write(self, puts: dict[str, str], deletes: tuple[str, ...] = ()) -> None:
        statements: list[tuple[str, tuple[Any, ...]]] = [
            (_UPSERT_SQL, (key, value)) for key, value in puts.items()
        ]
        statements.extend((_DELETE_SQL, (key,)) for key in deletes)
        await self._db.execute_transaction(statements)

    async def close(self) -> None:
        await self._db.close()


def _encode(record: dict[str, Any]) -> str:
    return json.dumps(record, ensure_ascii=False)


def _decode(raw: str, key: str) -> dict[str, Any]:
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise StorageCorrupt(f"{key} is not valid JSON") from exc
    if not isinstance(data, dict):
        raise StorageCorrupt(f"{key} is not a JSON object")
    return data


class SessionStore:
    """Load/save/clear for the persisted user and active organization.

    ``read_*`` raise :class:`StorageCorrupt` on unreadable records; ``load_*``
    log and return ``None`` instead.
    """

    def __init__(self, backend: KeyValueBackend) -> None:
        self._backend = backend

    # ------------------------------------------------------------------
    # User
    # ------------------------------------------------------------------

    async def read_user(self) -> User | None:
        raw = await self._get(USER_KEY)
        if raw is None:
            return None
        return User.from_payload(_decode(raw, USER_KEY))

    async def load_user(self) -> User | None:
        try:
            return await self.read_user()
        except StorageCorrupt as exc:
            log.warning("stored_user_discarded", error=exc.message)
            return None

    async def save_user(self, user: User) -> None:
        await self._write({USER_KEY: _encode(user.to_dict())})
        log.debug("user_saved", user_id=user.id, organization_id=user.organization_id)

    async def clear_user(self) -> None:
        await self._write({}, (USER_KEY,))

    # ------------------------------------------------------------------
    # Active organization
    # ------------------------------------------------------------------

    async def read_active_org(self) -> ActiveOrganization | None:
        raw = await self._get(ACTIVE_ORG_KEY)
        if raw is None:
            return None
        data = _decode(raw, ACTIVE_ORG_KEY)
        if data.get("organization_id") is None:
            raise StorageCorrupt(f"{ACTIVE_ORG_KEY} has no organization_id")
        return ActiveOrganization.from_payload(data)

    async def load_active_org(self) -> ActiveOrganization | None:
        try:
            return await self.read_active_org()
        except StorageCorrupt as exc:
            log.warning("stored_active_org_discarded", error=exc.message)
            return None

    async def save_active_org(self, org: ActiveOrganization) -> None:
        await self._write({ACTIVE_ORG_KEY: _encode(org.to_dict())})
        log.debug("active_org_saved", organization_id=org.organization_id)

    async def clear_active_org(self) -> None:
        await self._write({}, (ACTIVE_ORG_KEY,))

    # ------------------------------------------------------------------
    # Both records
    # ------------------------------------------------------------------

    async def save_session(self, user: User, org: ActiveOrganization) -> None:
        """Persist the user and its active organization together."""
        await self._write({
            USER_KEY: _encode(user.to_dict()),
            ACTIVE_ORG_KEY: _encode(org.to_dict()),
        })
        log.debug("session_saved", user_id=user.id, organization_id=org.organization_id)

    async def clear(self) -> None:
        await self._write({}, (USER_KEY, ACTIVE_ORG_KEY))
        log.info("session_cleared")

    async def close(self) -> None:
        await self._backend.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _get(self, key: str) -> str | None:
        try:
            return await self._backend.get(key)
        except sqlite3.Error as exc:
            raise StorageCorrupt(f"could not read {key}") from exc

    async def _write(self, puts: dict[str, str], deletes: tuple[str, ...] = ()) -> None:
        try:
            await self._backend.write(puts, deletes)
        except sqlite3.Error as exc:
            raise StorageCorrupt("could not write session storage") from exc
