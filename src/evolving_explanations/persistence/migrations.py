"""Schema migrations for the evaluation SQLite database."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from evolving_explanations.persistence.db import DatabaseManager

log = structlog.get_logger(__name__)

SCHEMA_VERSION = 1

_DDL_STATEMENTS = [
    # Schema version tracking
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        version     INTEGER PRIMARY KEY,
        applied_at  TEXT NOT NULL DEFAULT (datetime('now'))
    )
    """,
    # Raw model exchanges, for audit and billing
    """
    CREATE TABLE IF NOT EXISTS completions (
        id              TEXT PRIMARY KEY,
        test_id         TEXT NOT NULL,
        provider        TEXT NOT NULL,
        model           TEXT NOT NULL,
        messages        TEXT NOT NULL DEFAULT '[]',
        temperature     REAL NOT NULL,
        max_tokens      INTEGER NOT NULL,
        content         TEXT NOT NULL,
        usage           TEXT NOT NULL DEFAULT '{}',
        check_passed    INTEGER NOT NULL DEFAULT 0,
        recorded_at     TEXT NOT NULL
    )
    """,
    # Evaluation runs
    """
    CREATE TABLE IF NOT EXISTS runs (
        run_id          TEXT PRIMARY KEY,
        algorithm       TEXT NOT NULL DEFAULT 'EE',
        dataset         TEXT NOT NULL,
        provider        TEXT NOT NULL,
        model           TEXT NOT NULL,
        config          TEXT NOT NULL DEFAULT '{}',
        tests_completed INTEGER NOT NULL DEFAULT 0,
        tests_failed    INTEGER NOT NULL DEFAULT 0,
        finished_at     TEXT NOT NULL
    )
    """,
    # Per-generation consensus records
    """
    CREATE TABLE IF NOT EXISTS generation_results (
        run_id          TEXT NOT NULL REFERENCES runs(run_id),
        generation      INTEGER NOT NULL,
        position        INTEGER NOT NULL,
        test_id         TEXT NOT NULL,
        answer          TEXT NOT NULL,
        check_passed    INTEGER NOT NULL,
        PRIMARY KEY (run_id, generation, position)
    )
    """,
    # Indexes
    "CREATE INDEX IF NOT EXISTS idx_completions_test ON completions(test_id)",
    "CREATE INDEX IF NOT EXISTS idx_results_run      ON generation_results(run_id, generation)",
]


async def run_migrations(db: DatabaseManager) -> None:
    """Apply the DDL (idempotent) and stamp the schema version once."""
    async with db.transaction() as conn:
        for statement in _DDL_STATEMENTS:
            await conn.execute(statement)

    rows = await db.execute("SELECT COALESCE(MAX(version), 0) AS v FROM schema_version")
    if rows[0]["v"] >= SCHEMA_VERSION:
        log.debug("schema_current", version=SCHEMA_VERSION)
        return
    await db.execute_write("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
    log.info("schema_migrated", from_version=rows[0]["v"], to_version=SCHEMA_VERSION)
