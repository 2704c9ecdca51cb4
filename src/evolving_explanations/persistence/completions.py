"""Audit sinks for raw model exchanges."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

import structlog

from evolving_explanations.llm.client import ChatQuery, Completion
from evolving_explanations.persistence.db import DatabaseManager

log = structlog.get_logger(__name__)

_INSERT_SQL = """
    INSERT INTO completions (
        id, test_id, provider, model, messages, temperature, max_tokens,
        content, usage, check_passed, recorded_at
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(id) DO NOTHING
"""

_SELECT_BY_TEST = """
    SELECT * FROM completions WHERE test_id = ? ORDER BY recorded_at ASC
"""


@dataclass
class CompletionRecord:
    """One model exchange together with the correctness verdict it produced."""

    test_id: str
    query: ChatQuery
    completion: Completion
    check: bool
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    recorded_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class CompletionStore(Protocol):
    """Backend interface for storing completions."""

    async def save(self, record: CompletionRecord) -> None: ...


class InMemoryCompletionStore:
    """Keeps records in a list, for testing and dry runs."""

    def __init__(self) -> None:
        self.records: list[CompletionRecord] = []

    async def save(self, record: CompletionRecord) -> None:
        self.records.append(record)

    def by_test(self, test_id: str) -> list[CompletionRecord]:
        return [r for r in self.records if r.test_id == test_id]


class SQLiteCompletionStore:
    """Durable SQLite-backed completion store."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def save(self, record: CompletionRecord) -> None:
        """Persist a record, silently ignoring duplicate IDs."""
        query = record.query
        params = (
            record.id,
            record.test_id,
            query.provider,
            query.model,
            json.dumps([m.to_dict() for m in query.messages], ensure_ascii=False),
            query.temperature,
            query.max_tokens,
            record.completion.content,
            json.dumps(record.completion.usage),
            int(record.check),
            record.recorded_at.isoformat(),
        )
        await self._db.execute_write(_INSERT_SQL, params)
        log.debug("completion_saved", completion_id=record.id, test_id=record.test_id)

    async def get_by_test(self, test_id: str) -> list[dict]:
        """Return the stored rows for a test, oldest first, with JSON columns decoded."""
        rows = await self._db.execute(_SELECT_BY_TEST, (test_id,))
        for row in rows:
            row["messages"] = json.loads(row["messages"])
            row["usage"] = json.loads(row["usage"])
            row["check_passed"] = bool(row["check_passed"])
        return rows
