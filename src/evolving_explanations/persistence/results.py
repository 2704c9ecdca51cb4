"""SQLite persistence of run reports and per-generation consensus records."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from evolving_explanations.persistence.db import DatabaseManager

if TYPE_CHECKING:
    from evolving_explanations.runner import RunReport

log = structlog.get_logger(__name__)

_INSERT_RUN = """
    INSERT INTO runs (
        run_id, algorithm, dataset, provider, model, config,
        tests_completed, tests_failed, finished_at
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(run_id) DO UPDATE SET
        config = excluded.config,
        tests_completed = excluded.tests_completed,
        tests_failed = excluded.tests_failed,
        finished_at = excluded.finished_at
"""

_INSERT_RESULT = """
    INSERT OR REPLACE INTO generation_results (
        run_id, generation, position, test_id, answer, check_passed
    ) VALUES (?, ?, ?, ?, ?, ?)
"""

_SELECT_SUMMARY = """
    SELECT generation, SUM(check_passed) AS correct, COUNT(*) AS total
    FROM generation_results WHERE run_id = ?
    GROUP BY generation ORDER BY generation
"""


class SQLiteResultStore:
    """Stores a finished run and every generation record it aggregated."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def save_run(self, report: RunReport, config: dict | None = None) -> None:
        """Persist the run row and, when present, its generation records."""
        finished = report.finished_at or datetime.now(UTC)
        await self._db.execute_write(
            _INSERT_RUN,
            (
                report.run_id,
                report.algorithm,
                report.dataset,
                report.provider,
                report.model,
                json.dumps(config or {}),
                len(report.outcomes),
                len(report.failures),
                finished.isoformat(),
            ),
        )
        results = report.results
        if results is None:
            log.info("run_saved", run_id=report.run_id, records=0)
            return
        rows = [
            (report.run_id, generation, position, r.test_id, r.answer, int(r.check))
            for generation in results.generations
            for position, r in enumerate(results.records(generation))
        ]
        if rows:
            await self._db.execute_many(_INSERT_RESULT, rows)
        log.info("run_saved", run_id=report.run_id, records=len(rows))

    async def summary(self, run_id: str) -> dict[int, tuple[int, int]]:
        """Return ``{generation: (correct, total)}`` for a stored run."""
        rows = await self._db.execute(_SELECT_SUMMARY, (run_id,))
        return {row["generation"]: (int(row["correct"] or 0), row["total"]) for row in rows}
