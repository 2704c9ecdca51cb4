"""Judgement engine: appends critiques to candidates."""

from __future__ import annotations

import structlog

from evolving_explanations.config import EEConfig, ModelConfig
from evolving_explanations.datasets.base import Dataset, Test
from evolving_explanations.evolution import prompts
from evolving_explanations.evolution.audit import store_completion
from evolving_explanations.explanations.candidate import Candidate
from evolving_explanations.llm.client import ChatQuery, CompletionRunner
from evolving_explanations.persistence.completions import CompletionStore

logger = structlog.get_logger()


class JudgementEngine:
    """Critiques a candidate, or the critiques it has already received."""

    def __init__(
        self,
        config: EEConfig,
        model: ModelConfig,
        dataset: Dataset,
        run_completion: CompletionRunner,
        store: CompletionStore | None = None,
    ) -> None:
        self._config = config
        self._model = model
        self._dataset = dataset
        self._run_completion = run_completion
        self._store = store

    async def judge(self, test: Test, candidate: Candidate) -> None:
        """Append one new critique to ``candidate.critiques``.

        The prompt is built from the critiques present when the call starts.
        Correctness is never re-derived: the audit record carries ``check=False``.
        """
        messages = prompts.judgement_messages(self._dataset, test, candidate)
        query = ChatQuery(
            provider=self._model.provider,
            model=self._model.model,
            messages=messages,
            temperature=self._config.temperature,
            max_tokens=self._config.judgement_max_tokens,
        )

        completion = await self._run_completion(query)
        logger.debug(
            "judgement_received",
            test_id=test.id,
            prior_critiques=len(candidate.critiques),
            content=completion.content,
        )

        await store_completion(self._store, test, query, completion, check=False)
        candidate.critiques.append(completion.content)
