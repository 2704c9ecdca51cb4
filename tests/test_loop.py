"""Tests for the population lifecycle controller."""

from __future__ import annotations

import itertools
import re

import pytest
from _helpers import (
    MODEL,
    FakeDataset,
    ScriptedModel,
    default_reply,
    kind_of,
    make_candidate,
    make_config,
    make_controller,
    make_test,
)

from evolving_explanations.errors import ConsensusError, PoolSizeError
from evolving_explanations.events import EventKind, RecordingReporter
from evolving_explanations.evolution.consensus import GenerationRecord
from evolving_explanations.evolution.generator import CandidateGenerator
from evolving_explanations.evolution.judge import JudgementEngine
from evolving_explanations.evolution.loop import PopulationController
from evolving_explanations.evolution.results import GenerationResults, GenerationSummary
from evolving_explanations.explanations.pool import ExplanationPool


@pytest.mark.asyncio
async def test_minimal_run_records_the_single_candidate(dataset):
    config = make_config(pool_size=1, generations=0, judgements_depth=0)
    model = ScriptedModel()
    results = GenerationResults()

    outcome = await make_controller(config, dataset, model).run_test(make_test(), results)

    assert outcome.records == [GenerationRecord(test_id="t-1", answer="42", check=True)]
    assert (outcome.answer, outcome.check) == ("42", True)
    assert results.summarize() == {0: GenerationSummary(correct=1, total=1)}
    assert len(model.queries) == 1


@pytest.mark.asyncio
async def test_one_generation_records_precursor_and_final(dataset):
    config = make_config(pool_size=3, generations=1, judgements_depth=0)
    outcome = await make_controller(config, dataset, ScriptedModel()).run_test(make_test())
    assert [r.answer for r in outcome.records] == ["42", "42"]


@pytest.mark.asyncio
async def test_full_run_call_counts_and_records(dataset):
    config = make_config(pool_size=4, generations=2, judgements_depth=2)
    model = ScriptedModel()
    results = GenerationResults()

    outcome = await make_controller(config, dataset, model).run_test(make_test(), results)

    assert len(model.of_kind("init")) == 4
    assert len(model.of_kind("judge")) == 2 * 2 * 4
    assert len(model.of_kind("crossover")) == 2 * 4
    assert len(outcome.records) == config.generations + 1
    assert results.generations == [0, 1, 2]
    assert all(s.total == 1 for s in results.summarize().values())


@pytest.mark.asyncio
async def test_inner_concurrency_ceiling(dataset):
    config = make_config(pool_size=8, generations=1, judgements_depth=1, inner_concurrency=3)
    model = ScriptedModel(delay=0.002)
    await make_controller(config, dataset, model).run_test(make_test())
    assert model.peak_active == 3


@pytest.mark.asyncio
async def test_judgement_rounds_accumulate_in_order(dataset):
    config = make_config(pool_size=4, judgements_depth=3)

    def reply(query):
        user = query.messages[1].content
        explanation = user.split("\n\n")[1]
        prior = re.findall(r"EXPERT \d+:\n\n(\S+)", user)
        # every prior critique in the prompt belongs to this candidate
        assert all(p.startswith(explanation + ":") for p in prior)
        return f"{explanation}:critique-{len(prior)}"

    pool = ExplanationPool(
        [make_candidate(explanation=f"cand{i}") for i in range(4)], expected_size=4
    )
    controller = make_controller(config, dataset, ScriptedModel(reply))
    await controller.judge_pool(make_test(), pool, generation=0)

    for i, candidate in enumerate(pool):
        assert candidate.critiques == [f"cand{i}:critique-{k}" for k in range(3)]


@pytest.mark.asyncio
async def test_crossover_reads_only_the_pre_crossover_pool(dataset):
    config = make_config(pool_size=4, generations=2, judgements_depth=0, inner_concurrency=4)
    counter = itertools.count()

    def reply(query):
        if kind_of(query) == "crossover":
            return f"child-{next(counter)}\nANSWER: 42"
        return default_reply(query)

    model = ScriptedModel(reply, delay=0.001)
    await make_controller(config, dataset, model).run_test(make_test())

    crossovers = model.of_kind("crossover")
    first_round, second_round = crossovers[:4], crossovers[4:]
    for query in first_round:
        assert "child-" not in query.messages[1].content
    for query in second_round:
        referenced = {int(n) for n in re.findall(r"child-(\d+)", query.messages[1].content)}
        assert referenced
        assert referenced <= {0, 1, 2, 3}


@pytest.mark.asyncio
async def test_crossover_discards_critiques(dataset):
    config = make_config(pool_size=4, judgements_depth=2)
    controller = make_controller(config, dataset, ScriptedModel())
    test = make_test()

    pool = await controller.initialize(test)
    await controller.judge_pool(test, pool, 0)
    assert all(len(c.critiques) == 2 for c in pool)

    new_pool = await controller.crossover(test, pool, 0)
    assert new_pool.size == 4
    assert all(c.critiques == [] for c in new_pool)
    assert all(len(c.critiques) == 2 for c in pool)


@pytest.mark.asyncio
async def test_checker_failures_never_abort_the_test(model):
    dataset = FakeDataset(raise_on_check=True)
    config = make_config(pool_size=4, generations=1, judgements_depth=1)
    outcome = await make_controller(config, dataset, model).run_test(make_test())
    assert all(r.check is False for r in outcome.records)
    assert outcome.answer == "42"


class _ShortGenerator(CandidateGenerator):
    """Drops one candidate during initialization."""

    async def initialize(self, test, iteration=0):
        if iteration == 0:
            return None
        return await super().initialize(test, iteration)


@pytest.mark.asyncio
async def test_pool_size_violation_aborts_without_merging(config, dataset, model):
    reporter = RecordingReporter()
    controller = PopulationController(
        config,
        _ShortGenerator(config, MODEL, dataset, model),
        JudgementEngine(config, MODEL, dataset, model),
        reporter,
    )
    results = GenerationResults()

    with pytest.raises(PoolSizeError) as exc_info:
        await controller.run_test(make_test(), results)

    assert (exc_info.value.expected, exc_info.value.actual) == (4, 3)
    assert results.summarize() == {}
    violations = reporter.of_kind(EventKind.INVARIANT_VIOLATED)
    assert len(violations) == 1
    assert violations[0].data["error_type"] == "PoolSizeError"


@pytest.mark.asyncio
async def test_consensus_violation_aborts_without_merging(model):
    class FlakyDataset(FakeDataset):
        async def check(self, test, answer):
            self.check_calls += 1
            return self.check_calls % 2 == 0

    config = make_config(pool_size=4, generations=2)
    results = GenerationResults()
    reporter = RecordingReporter()

    with pytest.raises(ConsensusError):
        await make_controller(config, FlakyDataset(), model, reporter=reporter).run_test(make_test(), results)

    assert results.summarize() == {}
    assert reporter.of_kind(EventKind.TEST_COMPLETED) == []
    assert len(reporter.of_kind(EventKind.INVARIANT_VIOLATED)) == 1


@pytest.mark.asyncio
async def test_model_failure_aborts_the_test(config, dataset):
    def reply(query):
        if kind_of(query) == "judge":
            raise ConnectionError("provider down")
        return default_reply(query)

    results = GenerationResults()
    with pytest.raises(ConnectionError):
        await make_controller(config, dataset, ScriptedModel(reply)).run_test(make_test(), results)
    assert results.summarize() == {}


@pytest.mark.asyncio
async def test_event_sequence(dataset, model):
    config = make_config(pool_size=3, generations=1, judgements_depth=2)
    reporter = RecordingReporter()
    await make_controller(config, dataset, model, reporter=reporter).run_test(make_test())

    assert [e.kind for e in reporter.events] == [
        EventKind.POOL_INITIALIZED,
        EventKind.GENERATION_STARTED,
        EventKind.CONSENSUS_COMPUTED,
        EventKind.JUDGEMENT_ROUND_FINISHED,
        EventKind.JUDGEMENT_ROUND_FINISHED,
        EventKind.CROSSOVER_FINISHED,
        EventKind.GENERATION_FINISHED,
        EventKind.CONSENSUS_COMPUTED,
        EventKind.TEST_COMPLETED,
    ]
    consensus = reporter.of_kind(EventKind.CONSENSUS_COMPUTED)
    assert [e.generation for e in consensus] == [0, 1]
    assert consensus[0].data == {"answer": "42", "check": True, "good": 3, "pool_size": 3}


@pytest.mark.asyncio
async def test_broken_reporter_does_not_abort(config, dataset, model):
    class BrokenReporter:
        def emit(self, event):
            raise RuntimeError("sink closed")

    outcome = await make_controller(config, dataset, model, reporter=BrokenReporter()).run_test(make_test())
    assert outcome.check is True
