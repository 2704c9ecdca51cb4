"""JSONL-backed reasoning dataset."""

from __future__ import annotations

import json
import random
from pathlib import Path

import structlog

from evolving_explanations.datasets import register_dataset
from evolving_explanations.datasets.base import Example, MaxTokens, Test

log = structlog.get_logger(__name__)

_ANSWER_MARKER = "ANSWER:"

DEFAULT_INSTRUCTIONS = (
    "Answer the following question. Reason step by step before giving the final answer."
)
DEFAULT_STEP_INSTRUCTIONS = (
    "Each step should be a short deduction from the question or the previous steps."
    " Conclude with a single line starting with `ANSWER:` followed by the final answer only."
)


def _normalize(answer: str) -> str:
    return " ".join(answer.strip().rstrip(".").split()).lower()


@register_dataset("jsonl")
class JsonlDataset:
    """Reads one ``{"id", "question", "reasoning", "answer"}`` object per line.

    Every record is both a test and a potential few-shot example for the
    other tests; a test never sees itself as an example.
    """

    def __init__(
        self,
        path: Path | str,
        instructions: str = DEFAULT_INSTRUCTIONS,
        step_instructions: str = DEFAULT_STEP_INSTRUCTIONS,
        reasoning_step_tokens: int = 256,
        max_step_count: int = 16,
    ) -> None:
        self._path = Path(path)
        self.name = self._path.stem
        self._instructions = instructions
        self._step_instructions = step_instructions
        self._max_tokens = MaxTokens(reasoning_step_tokens, max_step_count)
        self._records = self._load()
        log.debug("dataset_loaded", dataset=self.name, records=len(self._records))

    def _load(self) -> list[dict]:
        records: list[dict] = []
        with self._path.open(encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    row = json.loads(line)
                except json.JSONDecodeError as exc:
                    raise ValueError(f"{self._path}:{lineno}: invalid JSON ({exc.msg})") from exc
                if not isinstance(row, dict):
                    raise ValueError(f"{self._path}:{lineno}: expected a JSON object, got {type(row).__name__}")
                missing = {"id", "question", "answer"} - row.keys()
                if missing:
                    raise ValueError(f"{self._path}:{lineno}: missing fields {sorted(missing)}")
                row["id"] = str(row["id"])
                row["answer"] = str(row["answer"])
                reasoning = row.get("reasoning") or []
                row["reasoning"] = [reasoning] if isinstance(reasoning, str) else list(reasoning)
                records.append(row)
        return records

    def instructions(self) -> str:
        return self._instructions

    def reasoning_step_instructions(self) -> str:
        return self._step_instructions

    def max_tokens(self) -> MaxTokens:
        return self._max_tokens

    def tests(self) -> list[Test]:
        return [
            Test(id=r["id"], question=r["question"], answer=r["answer"], metadata=r.get("metadata", {}))
            for r in self._records
        ]

    def examples(self, problem: str, count: int, iteration: int) -> list[Example]:
        """Pick ``count`` examples other than ``problem``, reproducibly per iteration."""
        candidates = [r for r in self._records if r["id"] != problem]
        rng = random.Random(f"{self.name}-EXAMPLES-{problem}-{iteration}")
        rng.shuffle(candidates)
        return [
            Example(question=r["question"], reasoning=r["reasoning"], answer=r["answer"])
            for r in candidates[:count]
        ]

    def parse_answer(self, text: str) -> str:
        """Return the text following the last ``ANSWER:`` marker, or ``""``."""
        idx = text.rfind(_ANSWER_MARKER)
        if idx < 0:
            return ""
        tail = text[idx + len(_ANSWER_MARKER):].strip()
        return tail.splitlines()[0].strip() if tail else ""

    async def check(self, test: Test, answer: str) -> bool:
        if not answer:
            raise ValueError(f"No answer to check for test {test.id!r}")
        return _normalize(answer) == _normalize(test.answer)
