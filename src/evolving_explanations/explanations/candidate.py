"""A candidate explanation and its accumulated critiques."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Candidate:
    """One member of a generation's pool.

    Only the judgement engine mutates a candidate, by appending to
    ``critiques``. Crossover never edits a candidate; it produces a new one
    with no critiques.
    """

    explanation: str
    answer: str
    check: bool
    critiques: list[str] = field(default_factory=list)  # oldest first
