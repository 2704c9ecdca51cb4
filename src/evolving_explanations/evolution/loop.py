"""Population lifecycle - drives one test through init, generations and final consensus."""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from evolving_explanations.config import EEConfig
from evolving_explanations.datasets.base import Test
from evolving_explanations.errors import EvolutionError
from evolving_explanations.events import EventKind, EventReporter, EvolutionEvent, FanoutReporter, LoggingReporter
from evolving_explanations.evolution import consensus
from evolving_explanations.evolution.consensus import GenerationRecord
from evolving_explanations.evolution.executor import BoundedExecutor
from evolving_explanations.evolution.generator import CandidateGenerator
from evolving_explanations.evolution.judge import JudgementEngine
from evolving_explanations.evolution.results import GenerationResults
from evolving_explanations.explanations.candidate import Candidate
from evolving_explanations.explanations.pool import ExplanationPool

logger = structlog.get_logger()


@dataclass
class TestOutcome:
    """Final consensus of a test plus its record at every generation index."""

    __test__ = False  # not a pytest class

    test_id: str
    answer: str
    check: bool
    records: list[GenerationRecord] = field(default_factory=list)


class PopulationController:
    """Runs the evolutionary explanation algorithm for one test at a time.

    For each test:
    1. Initialize a pool of ``pool_size`` candidates from few-shot prompts
    2. For each generation: record consensus, run ``judgements_depth``
       sequential judge rounds, then replace the pool by crossover
    3. Record the consensus of the final pool

    A controller holds no per-test state, so one instance can process many
    tests concurrently.
    """

    def __init__(
        self,
        config: EEConfig,
        generator: CandidateGenerator,
        judge: JudgementEngine,
        reporter: EventReporter | None = None,
    ) -> None:
        self._config = config
        self._generator = generator
        self._judge = judge
        self._reporter = FanoutReporter(reporter or LoggingReporter())

    def _emit(self, kind: EventKind, test: Test, generation: int | None = None, **data: object) -> None:
        self._reporter.emit(EvolutionEvent(kind=kind, test_id=test.id, generation=generation, data=data))

    def _executor(self) -> BoundedExecutor:
        return BoundedExecutor(self._config.inner_concurrency)

    async def run_test(self, test: Test, results: GenerationResults | None = None) -> TestOutcome:
        """Process ``test`` end to end.

        Records are merged into ``results`` only once the test completes; on
        any failure nothing is merged and the error propagates.
        """
        records: list[GenerationRecord] = []
        try:
            pool = await self.initialize(test)

            for generation in range(self._config.generations):
                self._emit(EventKind.GENERATION_STARTED, test, generation)
                records.append(self.consensus(test, pool, generation))
                await self.judge_pool(test, pool, generation)
                pool = await self.crossover(test, pool, generation)
                self._emit(EventKind.GENERATION_FINISHED, test, generation)

            records.append(self.consensus(test, pool, self._config.generations))
        except EvolutionError as exc:
            self._emit(EventKind.INVARIANT_VIOLATED, test, error=str(exc), error_type=type(exc).__name__)
            raise

        if results is not None:
            results.merge(enumerate(records))

        final = records[-1]
        self._emit(EventKind.TEST_COMPLETED, test, self._config.generations, answer=final.answer, check=final.check)
        return TestOutcome(test_id=test.id, answer=final.answer, check=final.check, records=records)

    async def initialize(self, test: Test) -> ExplanationPool:
        """Build the initial pool; raises PoolSizeError unless it is full."""
        produced = await self._executor().map(
            [
                (lambda i=i: self._generator.initialize(test, iteration=i))
                for i in range(self._config.pool_size)
            ]
        )
        pool = ExplanationPool(_present(produced), self._config.pool_size, phase="initialization")
        self._emit(EventKind.POOL_INITIALIZED, test, 0, good=pool.correct_count, pool_size=pool.size)
        return pool

    def consensus(self, test: Test, pool: ExplanationPool, generation: int) -> GenerationRecord:
        record = consensus.resolve(test, pool)
        self._emit(
            EventKind.CONSENSUS_COMPUTED,
            test,
            generation,
            answer=record.answer,
            check=record.check,
            good=pool.correct_count,
            pool_size=pool.size,
        )
        return record

    async def judge_pool(self, test: Test, pool: ExplanationPool, generation: int) -> None:
        """Run the judge rounds; each round finishes before the next one starts."""
        for depth in range(self._config.judgements_depth):
            await self._executor().map(
                [(lambda c=c: self._judge.judge(test, c)) for c in pool]
            )
            self._emit(EventKind.JUDGEMENT_ROUND_FINISHED, test, generation, depth=depth)

    async def crossover(self, test: Test, pool: ExplanationPool, generation: int) -> ExplanationPool:
        """Replace the pool; every iteration reads the same pre-crossover snapshot."""
        parents = pool.snapshot()
        produced = await self._executor().map(
            [
                (lambda i=i: self._generator.crossover(test, parents, generation=generation, iteration=i))
                for i in range(self._config.pool_size)
            ]
        )
        new_pool = ExplanationPool(_present(produced), self._config.pool_size, phase="crossover")
        self._emit(EventKind.CROSSOVER_FINISHED, test, generation, good=new_pool.correct_count)
        return new_pool


def _present(candidates: list[Candidate | None]) -> list[Candidate]:
    return [c for c in candidates if c is not None]
