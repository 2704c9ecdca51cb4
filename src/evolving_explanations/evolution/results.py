"""Per-generation aggregation of consensus outcomes across tests."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Iterable

from evolving_explanations.evolution.consensus import GenerationRecord


@dataclass(frozen=True)
class GenerationSummary:
    correct: int
    total: int

    @property
    def accuracy(self) -> float:
        return self.correct / self.total if self.total else 0.0


class GenerationResults:
    """Append-only mapping of generation index -> records, safe for concurrent writers.

    A test's records are merged in a single call once the test completes, so
    an aborted test never leaves partial generations behind.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_generation: dict[int, list[GenerationRecord]] = {}

    def record(self, generation: int, result: GenerationRecord) -> None:
        with self._lock:
            self._by_generation.setdefault(generation, []).append(result)

    def merge(self, records: Iterable[tuple[int, GenerationRecord]]) -> None:
        """Append several (generation, record) pairs atomically."""
        with self._lock:
            for generation, result in records:
                self._by_generation.setdefault(generation, []).append(result)

    def records(self, generation: int) -> list[GenerationRecord]:
        with self._lock:
            return list(self._by_generation.get(generation, []))

    @property
    def generations(self) -> list[int]:
        with self._lock:
            return sorted(self._by_generation)

    def summarize(self) -> dict[int, GenerationSummary]:
        with self._lock:
            return {
                generation: GenerationSummary(
                    correct=sum(1 for r in records if r.check),
                    total=len(records),
                )
                for generation, records in sorted(self._by_generation.items())
            }
