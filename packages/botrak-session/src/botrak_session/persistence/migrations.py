"""Schema migrations for the session SQLite database."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from botrak_session.persistence.db import DatabaseManager

log = structlog.get_logger(__name__)

SCHEMA_VERSION = 1

_DDL_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        version     INTEGER PRIMARY KEY,
        applied_at  TEXT NOT NULL DEFAULT (datetime('now'))
    )
    """,
    # One row per logical key: user_session, active_org
    """
    CREATE TABLE IF NOT EXISTS session_kv (
        key         TEXT PRIMARY KEY,
        value       TEXT NOT NULL,
        updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
    )
    """,
]


async def run_migrations(db: DatabaseManager) -> None:
    """Create tables, then record the schema version."""
    for statement in _DDL_STATEMENTS:
        await db.execute_write(statement.strip())

    rows = await db.execute("SELECT MAX(version) AS v FROM schema_version")
    current_version = rows[0]["v"] if rows and rows[0]["v"] is not None else 0

    if current_version < SCHEMA_VERSION:
        await db.execute_write(
            "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
        log.info("migration_applied", version=SCHEMA_VERSION)
    else:
        log.debug("schema_already_current", version=SCHEMA_VERSION)
