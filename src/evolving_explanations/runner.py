"""Multi-test evaluation runner.

Runs the population lifecycle over many tests under an outer concurrency
limit, isolating failures so one test's fatal error never aborts its
siblings, and aggregates consensus outcomes per generation.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Sequence

import structlog

from evolving_explanations.config import EEConfig, ModelConfig
from evolving_explanations.datasets.base import Dataset, Test
from evolving_explanations.events import EventKind, EventReporter, EvolutionEvent, FanoutReporter, LoggingReporter
from evolving_explanations.evolution.generator import CandidateGenerator
from evolving_explanations.evolution.judge import JudgementEngine
from evolving_explanations.evolution.loop import PopulationController, TestOutcome
from evolving_explanations.evolution.results import GenerationResults, GenerationSummary
from evolving_explanations.llm.client import ChatQuery, Completion, CompletionRunner
from evolving_explanations.persistence.completions import CompletionStore

logger = structlog.get_logger()

ALGORITHM = "EE"


class _CountingRunner:
    """Wraps a completion runner to count model invocations."""

    def __init__(self, inner: CompletionRunner) -> None:
        self._inner = inner
        self.calls = 0

    async def __call__(self, query: ChatQuery) -> Completion:
        self.calls += 1
        return await self._inner(query)


@dataclass
class RunReport:
    """Outcome of one evaluation run."""

    run_id: str
    dataset: str
    provider: str
    model: str
    summary: dict[int, GenerationSummary]
    outcomes: list[TestOutcome] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)
    completions: int = 0
    algorithm: str = ALGORITHM
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None
    results: GenerationResults | None = field(default=None, repr=False)

    def result_lines(self) -> list[str]:
        """One human-readable line per generation index."""
        return [
            f"Result: algorithm={self.algorithm} dataset={self.dataset} "
            f"provider={self.provider} model={self.model} "
            f"generation={generation} check={s.correct} total={s.total}"
            for generation, s in self.summary.items()
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "algorithm": self.algorithm,
            "dataset": self.dataset,
            "provider": self.provider,
            "model": self.model,
            "generations": [
                {"generation": g, "correct": s.correct, "total": s.total, "accuracy": s.accuracy}
                for g, s in self.summary.items()
            ],
            "tests": [
                {"test_id": o.test_id, "answer": o.answer, "check": o.check} for o in self.outcomes
            ],
            "failures": dict(self.failures),
            "completions": self.completions,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class EvaluationRunner:
    """Wires the generator, judge and controller, and runs them over a test set."""

    def __init__(
        self,
        config: EEConfig,
        model: ModelConfig,
        dataset: Dataset,
        run_completion: CompletionRunner,
        store: CompletionStore | None = None,
        reporter: EventReporter | None = None,
    ) -> None:
        self._config = config
        self._model = model
        self._dataset = dataset
        self._runner = _CountingRunner(run_completion)
        self._reporter = FanoutReporter(reporter or LoggingReporter())
        generator = CandidateGenerator(config, model, dataset, self._runner, store)
        judge = JudgementEngine(config, model, dataset, self._runner, store)
        self.controller = PopulationController(config, generator, judge, self._reporter)

    async def run(
        self,
        tests: Sequence[Test],
        outer_concurrency: int = 1,
        test_timeout_s: float | None = None,
        run_id: str | None = None,
    ) -> RunReport:
        """Process every test; only tests that complete contribute to the summary."""
        run_id = run_id or str(uuid.uuid4())
        results = GenerationResults()
        outcomes: dict[int, TestOutcome] = {}
        failures: dict[str, str] = {}
        sem = asyncio.Semaphore(max(1, outer_concurrency))
        started_at = datetime.now(UTC)
        calls_before = self._runner.calls

        logger.info(
            "run_start",
            run_id=run_id,
            dataset=self._dataset.name,
            model=self._model.model,
            tests=len(tests),
            pool_size=self._config.pool_size,
            generations=self._config.generations,
        )

        async def _process(position: int, test: Test) -> None:
            async with sem:
                deadline = asyncio.timeout(test_timeout_s)
                try:
                    async with deadline:
                        outcomes[position] = await self.controller.run_test(test, results)
                except TimeoutError as exc:
                    if deadline.expired():
                        self._fail(failures, test, f"timed out after {test_timeout_s}s", "TimeoutError")
                    else:
                        self._fail(failures, test, str(exc) or "TimeoutError", "TimeoutError")
                except asyncio.CancelledError:
                    # The run itself is being cancelled, not just this test.
                    if asyncio.current_task().cancelling():
                        raise
                    self._fail(failures, test, "cancelled", "CancelledError")
                except Exception as exc:
                    self._fail(failures, test, str(exc) or type(exc).__name__, type(exc).__name__)

        await asyncio.gather(*(_process(i, t) for i, t in enumerate(tests)))

        report = RunReport(
            run_id=run_id,
            dataset=self._dataset.name,
            provider=self._model.provider,
            model=self._model.model,
            summary=results.summarize(),
            outcomes=[outcomes[i] for i in sorted(outcomes)],
            failures=failures,
            completions=self._runner.calls - calls_before,
            started_at=started_at,
            finished_at=datetime.now(UTC),
            results=results,
        )
        logger.info(
            "run_complete",
            run_id=run_id,
            completed=len(report.outcomes),
            failed=len(failures),
            completions=report.completions,
        )
        return report

    def _fail(self, failures: dict[str, str], test: Test, error: str, error_type: str) -> None:
        failures[test.id] = error
        self._reporter.emit(
            EvolutionEvent(
                kind=EventKind.TEST_FAILED,
                test_id=test.id,
                data={"error": error, "error_type": error_type},
            )
        )
