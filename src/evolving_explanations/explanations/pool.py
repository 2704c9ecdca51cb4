"""Fixed-size pool of candidate explanations."""

from __future__ import annotations

from typing import Iterator, Sequence

from evolving_explanations.errors import PoolSizeError
from evolving_explanations.explanations.candidate import Candidate


class ExplanationPool:
    """An ordered pool of candidates for one test at one generation."""

    def __init__(self, candidates: Sequence[Candidate], expected_size: int, phase: str = "") -> None:
        if len(candidates) != expected_size:
            raise PoolSizeError(expected_size, len(candidates), phase)
        self._candidates = list(candidates)

    @property
    def candidates(self) -> list[Candidate]:
        return list(self._candidates)

    @property
    def size(self) -> int:
        return len(self._candidates)

    @property
    def correct_count(self) -> int:
        return sum(1 for c in self._candidates if c.check)

    def __len__(self) -> int:
        return len(self._candidates)

    def __iter__(self) -> Iterator[Candidate]:
        return iter(self._candidates)

    def __getitem__(self, index: int) -> Candidate:
        return self._candidates[index]

    def snapshot(self) -> tuple[Candidate, ...]:
        """Frozen view of the membership, for a crossover round to read from."""
        return tuple(self._candidates)
