"""Dataset collaborator interface consumed by the evolution core."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class Test:
    """A single evaluation question. Opaque to the core beyond ``id`` and ``question``."""

    __test__ = False  # not a pytest class

    id: str
    question: str
    answer: str = ""
    metadata: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class Example:
    """A fully worked few-shot example."""

    question: str
    reasoning: list[str]
    answer: str


@dataclass(frozen=True)
class MaxTokens:
    """Per-dataset token budget for a full explanation."""

    reasoning_step: int
    max_step_count: int

    @property
    def total(self) -> int:
        return self.reasoning_step * self.max_step_count


class Dataset(Protocol):
    """Supplies prompts' fixed text, few-shot examples, answer parsing and checking."""

    name: str

    def instructions(self) -> str: ...
    def reasoning_step_instructions(self) -> str: ...
    def max_tokens(self) -> MaxTokens: ...
    def examples(self, problem: str, count: int, iteration: int) -> list[Example]: ...
    def parse_answer(self, text: str) -> str: ...
    async def check(self, test: Test, answer: str) -> bool: ...
    def tests(self) -> list[Test]: ...
