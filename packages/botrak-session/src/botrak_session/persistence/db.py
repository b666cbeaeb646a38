"""Async SQLite connection manager for the durable session store."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import aiosqlite
import structlog

log = structlog.get_logger(__name__)

_PRAGMA_WAL = "PRAGMA journal_mode = WAL"


class DatabaseManager:
    """Manages an aiosqlite connection with WAL mode enabled.

    Usage::

        db = DatabaseManager(settings.storage.db_path)
        await db.initialize()
        rows = await db.execute("SELECT * FROM session_kv")
        await db.close()
    """

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path)
        self._conn: aiosqlite.Connection | None = None
        log.debug("db_manager_created", path=str(self._db_path))

    @property
    def path(self) -> Path:
        return self._db_path

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Open the connection, enable WAL, and run migrations."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row

        await self._conn.execute(_PRAGMA_WAL)
        await self._conn.commit()

        from botrak_session.persistence.migrations import run_migrations
        await run_migrations(self)

        log.info("db_initialized", path=str(self._db_path))

    async def close(self) -> None:
        """Close the underlying connection."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            log.debug("db_closed", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    async def execute(self, sql: str, params: tuple[Any, ...] = ()) -> list[dict[str, Any]]:
        """Execute a SELECT statement and return rows as plain dicts."""
        conn = self._require_connection()
        async with conn.execute(sql, params) as cursor:
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    async def execute_write(self, sql: str, params: tuple[Any, ...] = ()) -> int:
        """Execute a single INSERT / UPDATE / DELETE / DDL statement and commit.

        Returns the number of rows affected (0 for DDL).
        """
        return await self.execute_transaction([(sql, params)])

    async def execute_transaction(self, statements: list[tuple[str, tuple[Any, ...]]]) -> int:
        """Run several write statements under one commit.

        Either every statement is applied or, on failure, none is.
        Returns the total number of rows affected.
        """
        conn = self._require_connection()
        affected = 0
        try:
            for sql, params in statements:
                async with conn.execute(sql, params) as cursor:
                    affected += cursor.rowcount if cursor.rowcount >= 0 else 0
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise
        return affected

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError(
                "DatabaseManager is not initialized. Call await db.initialize() first."
            )
        return self._conn
