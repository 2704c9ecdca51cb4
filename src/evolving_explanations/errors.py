"""Fatal per-test error conditions."""

from __future__ import annotations


class EvolutionError(Exception):
    """Base for errors that abort the processing of a single test."""


class PoolSizeError(EvolutionError):
    """A pool does not hold exactly the configured number of candidates."""

    def __init__(self, expected: int, actual: int, phase: str = "") -> None:
        self.expected = expected
        self.actual = actual
        self.phase = phase
        where = f" after {phase}" if phase else ""
        super().__init__(f"Invalid pool size{where}: expected {expected}, got {actual}")


class ConsensusError(EvolutionError):
    """Two candidates share an answer string but disagree on correctness."""

    def __init__(self, answer: str) -> None:
        self.answer = answer
        super().__init__(f"Inconsistent check for answer {answer!r}")
