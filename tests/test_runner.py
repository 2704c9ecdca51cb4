"""Tests for the multi-test evaluation runner."""

import asyncio

import pytest
from _helpers import MODEL, FakeDataset, ScriptedModel, default_reply, make_config

from evolving_explanations.datasets.base import Test
from evolving_explanations.events import EventKind, RecordingReporter
from evolving_explanations.evolution.results import GenerationSummary
from evolving_explanations.runner import EvaluationRunner


def _tests() -> list[Test]:
    return [
        Test(id="good", question="What is 7 * 6?", answer="42"),
        Test(id="wrong", question="What is 6 * 6?", answer="36"),
        Test(id="bad", question="What is 9 * 6?", answer="54"),
    ]


def _reply_failing_on(question_fragment: str):
    def reply(query):
        if any(question_fragment in m.content for m in query.messages):
            raise ConnectionError("provider down")
        return default_reply(query)

    return reply


@pytest.mark.asyncio
async def test_failures_are_isolated(store):
    reporter = RecordingReporter()
    runner = EvaluationRunner(
        make_config(), MODEL, FakeDataset(), ScriptedModel(_reply_failing_on("9 * 6")), store, reporter
    )

    report = await runner.run(_tests(), outer_concurrency=3)

    assert [o.test_id for o in report.outcomes] == ["good", "wrong"]
    assert set(report.failures) == {"bad"}
    assert "provider down" in report.failures["bad"]
    assert report.summary == {
        0: GenerationSummary(correct=1, total=2),
        1: GenerationSummary(correct=1, total=2),
    }
    failed = reporter.of_kind(EventKind.TEST_FAILED)
    assert [e.test_id for e in failed] == ["bad"]
    assert failed[0].data["error_type"] == "ConnectionError"


@pytest.mark.asyncio
async def test_outer_concurrency_runs_tests_in_parallel():
    model = ScriptedModel(delay=0.002)
    config = make_config(pool_size=3, inner_concurrency=3, generations=0, judgements_depth=0)
    runner = EvaluationRunner(config, MODEL, FakeDataset(), model)

    await runner.run(_tests(), outer_concurrency=3)
    assert model.peak_active == 9


@pytest.mark.asyncio
async def test_outer_concurrency_one_runs_tests_sequentially():
    model = ScriptedModel(delay=0.002)
    config = make_config(pool_size=3, inner_concurrency=3, generations=0, judgements_depth=0)
    runner = EvaluationRunner(config, MODEL, FakeDataset(), model)

    await runner.run(_tests(), outer_concurrency=1)
    assert model.peak_active == 3


@pytest.mark.asyncio
async def test_timed_out_test_is_abandoned():
    def reply(query):
        return default_reply(query)

    class SlowOnOne(ScriptedModel):
        async def __call__(self, query):
            if any("9 * 6" in m.content for m in query.messages):
                await asyncio.sleep(10)
            return await super().__call__(query)

    runner = EvaluationRunner(make_config(), MODEL, FakeDataset(), SlowOnOne(reply))
    report = await runner.run(_tests(), outer_concurrency=3, test_timeout_s=0.5)

    assert report.failures == {"bad": "timed out after 0.5s"}
    assert all(s.total == 2 for s in report.summary.values())


@pytest.mark.asyncio
async def test_report_lines_and_dict():
    runner = EvaluationRunner(make_config(generations=1, judgements_depth=1), MODEL, FakeDataset(), ScriptedModel())
    report = await runner.run(_tests()[:2], run_id="run-1")

    assert report.result_lines() == [
        "Result: algorithm=EE dataset=fake provider=mock model=mock-model generation=0 check=1 total=2",
        "Result: algorithm=EE dataset=fake provider=mock model=mock-model generation=1 check=1 total=2",
    ]
    data = report.to_dict()
    assert data["run_id"] == "run-1"
    assert data["generations"][0] == {"generation": 0, "correct": 1, "total": 2, "accuracy": 0.5}
    assert data["tests"] == [
        {"test_id": "good", "answer": "42", "check": True},
        {"test_id": "wrong", "answer": "42", "check": False},
    ]
    # per test: 4 init + 4 judge + 4 crossover
    assert report.completions == 24
    assert data["completions"] == 24


@pytest.mark.asyncio
async def test_completion_count_is_per_run():
    runner = EvaluationRunner(make_config(generations=0, judgements_depth=0), MODEL, FakeDataset(), ScriptedModel())
    first = await runner.run(_tests()[:1])
    second = await runner.run(_tests()[:1])
    assert first.completions == second.completions == 4


@pytest.mark.asyncio
async def test_cancelled_test_does_not_abort_siblings():
    def reply(query):
        if any("9 * 6" in m.content for m in query.messages):
            raise asyncio.CancelledError()
        return default_reply(query)

    reporter = RecordingReporter()
    runner = EvaluationRunner(make_config(), MODEL, FakeDataset(), ScriptedModel(reply), reporter=reporter)
    tests = [_tests()[0], _tests()[2]]

    report = await runner.run(tests, outer_concurrency=2)

    assert [o.test_id for o in report.outcomes] == ["good"]
    assert report.failures == {"bad": "cancelled"}
    failed = reporter.of_kind(EventKind.TEST_FAILED)
    assert [e.data["error_type"] for e in failed] == ["CancelledError"]
    assert all(s.total == 1 for s in report.summary.values())


@pytest.mark.asyncio
async def test_cancelling_the_run_propagates():
    runner = EvaluationRunner(make_config(), MODEL, FakeDataset(), ScriptedModel(delay=10))
    task = asyncio.create_task(runner.run(_tests(), outer_concurrency=3))
    await asyncio.sleep(0.05)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_provider_timeout_is_not_reported_as_test_timeout():
    def reply(query):
        if any("9 * 6" in m.content for m in query.messages):
            raise TimeoutError("provider read timed out")
        return default_reply(query)

    reporter = RecordingReporter()
    runner = EvaluationRunner(make_config(), MODEL, FakeDataset(), ScriptedModel(reply), reporter=reporter)

    report = await runner.run(_tests(), outer_concurrency=3, test_timeout_s=30)

    assert report.failures == {"bad": "provider read timed out"}
    assert reporter.of_kind(EventKind.TEST_FAILED)[0].data["error_type"] == "TimeoutError"
    assert len(report.outcomes) == 2
