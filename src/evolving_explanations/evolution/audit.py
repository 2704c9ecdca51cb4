"""Shared tail of every model call: correctness check and audit recording."""

from __future__ import annotations

import structlog

from evolving_explanations.datasets.base import Dataset, Test
from evolving_explanations.llm.client import ChatQuery, Completion
from evolving_explanations.persistence.completions import CompletionRecord, CompletionStore

logger = structlog.get_logger()


async def check_answer(dataset: Dataset, test: Test, answer: str) -> bool:
    """Ask the dataset whether ``answer`` is correct.

    A checker that raises means "not correct": the error is logged and
    ``False`` is returned. Cancellation still propagates.
    """
    try:
        return bool(await dataset.check(test, answer))
    except Exception as exc:
        logger.debug("check_failed", test_id=test.id, answer=answer, error=str(exc))
        return False


async def store_completion(
    store: CompletionStore | None,
    test: Test,
    query: ChatQuery,
    completion: Completion,
    check: bool,
) -> None:
    """Record a model exchange. Store failures are logged and dropped."""
    if store is None:
        return
    try:
        await store.save(CompletionRecord(test_id=test.id, query=query, completion=completion, check=check))
    except Exception as exc:
        logger.warning("completion_store_failed", test_id=test.id, error=str(exc))
