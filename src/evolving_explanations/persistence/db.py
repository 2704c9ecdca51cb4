"""aiosqlite connection shared by the completion and result stores."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite
import structlog

log = structlog.get_logger(__name__)

_PRAGMAS = ("PRAGMA journal_mode = WAL", "PRAGMA foreign_keys = ON")


class DatabaseManager:
    """One SQLite connection for a whole evaluation run.

    Tests running concurrently share the manager, so every write goes through
    :meth:`transaction`, which holds a lock until the commit.

    Usage::

        async with DatabaseManager("runs/evals.db") as db:
            rows = await db.execute("SELECT * FROM runs")
    """

    def __init__(self, db_path: Path | str | None = None) -> None:
        if db_path is None:
            from evolving_explanations.persistence.repo import get_db_path
            db_path = get_db_path()

        self._db_path = Path(db_path)
        self._conn: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._db_path

    @property
    def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError(f"Database {self._db_path} is not initialized; call initialize() first")
        return self._conn

    async def __aenter__(self) -> DatabaseManager:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def initialize(self) -> None:
        """Open the connection, apply pragmas and bring the schema up to date."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row
        for pragma in _PRAGMAS:
            await self._conn.execute(pragma)

        from evolving_explanations.persistence.migrations import run_migrations
        await run_migrations(self)
        log.info("db_initialized", path=str(self._db_path))

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None
        log.debug("db_closed", path=str(self._db_path))

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Serialize a block of writes; commit on success, roll back on error."""
        conn = self._connection
        async with self._write_lock:
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                raise
            await conn.commit()

    async def execute(self, sql: str, params: tuple[Any, ...] = ()) -> list[dict[str, Any]]:
        """Run a query and return its rows as dicts."""
        async with self._connection.execute(sql, params) as cursor:
            return [dict(row) for row in await cursor.fetchall()]

    async def execute_write(self, sql: str, params: tuple[Any, ...] = ()) -> int:
        """Run one write statement; returns the affected row count (0 for DDL)."""
        async with self.transaction() as conn:
            async with conn.execute(sql, params) as cursor:
                return max(cursor.rowcount, 0)

    async def execute_many(self, sql: str, rows: list[tuple[Any, ...]]) -> None:
        """Run one statement per parameter tuple in a single transaction."""
        async with self.transaction() as conn:
            await conn.executemany(sql, rows)
