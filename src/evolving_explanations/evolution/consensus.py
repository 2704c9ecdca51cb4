"""Majority-vote consensus over a pool."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from evolving_explanations.datasets.base import Test
from evolving_explanations.errors import ConsensusError
from evolving_explanations.explanations.candidate import Candidate


@dataclass(frozen=True)
class GenerationRecord:
    """Consensus outcome of one test's pool at one generation index."""

    test_id: str
    answer: str
    check: bool


def resolve(test: Test, pool: Iterable[Candidate]) -> GenerationRecord:
    """Return the majority answer of ``pool`` and its correctness.

    Answers are compared exactly. On a tie the answer seen first in pool
    order wins. Raises :class:`ConsensusError` when two candidates share an
    answer but not a ``check`` value.
    """
    tally: dict[str, list] = {}  # answer -> [count, check], insertion ordered
    for candidate in pool:
        entry = tally.get(candidate.answer)
        if entry is None:
            tally[candidate.answer] = [1, candidate.check]
            continue
        if entry[1] != candidate.check:
            raise ConsensusError(candidate.answer)
        entry[0] += 1

    best_answer, best_count, best_check = "", 0, False
    for answer, (count, check) in tally.items():
        if count > best_count:
            best_answer, best_count, best_check = answer, count, check

    return GenerationRecord(test_id=test.id, answer=best_answer, check=best_check)
