"""Candidate generation: few-shot initialization and crossover."""

from __future__ import annotations

from typing import Sequence

import structlog

from evolving_explanations.config import EEConfig, ModelConfig
from evolving_explanations.datasets.base import Dataset, Test
from evolving_explanations.evolution import prompts
from evolving_explanations.evolution.audit import check_answer, store_completion
from evolving_explanations.evolution.sampler import select_parents
from evolving_explanations.explanations.candidate import Candidate
from evolving_explanations.llm.client import ChatMessage, ChatQuery, CompletionRunner
from evolving_explanations.persistence.completions import CompletionStore

logger = structlog.get_logger()


class CandidateGenerator:
    """Produces new candidates, either from few-shot examples or from parent candidates."""

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

    def _query(self, messages: list[ChatMessage]) -> ChatQuery:
        return ChatQuery(
            provider=self._model.provider,
            model=self._model.model,
            messages=messages,
            temperature=self._config.temperature,
            max_tokens=self._dataset.max_tokens().total,
        )

    async def initialize(self, test: Test, iteration: int = 0) -> Candidate:
        """Generate a first-generation candidate from few-shot examples."""
        examples = self._dataset.examples(problem=test.id, count=self._config.n_shot, iteration=iteration)
        messages = prompts.init_messages(self._dataset, test, examples, self._config.n_shot)
        candidate = await self._complete(test, self._query(messages))
        logger.debug(
            "candidate_initialized",
            test_id=test.id,
            iteration=iteration,
            answer=candidate.answer,
            check=candidate.check,
        )
        return candidate

    async def crossover(
        self,
        test: Test,
        pool: Sequence[Candidate],
        generation: int,
        iteration: int,
    ) -> Candidate:
        """Recombine deterministically chosen parents and their critiques into a new candidate."""
        indexes = select_parents(
            test.id,
            generation,
            iteration,
            pool_size=len(pool),
            max_crossovers=self._config.max_crossovers,
            tag=self._config.seed_tag,
        )
        parents = [pool[i] for i in indexes]
        messages = prompts.crossover_messages(self._dataset, test, parents)
        candidate = await self._complete(test, self._query(messages))
        logger.debug(
            "candidate_crossed_over",
            test_id=test.id,
            generation=generation,
            iteration=iteration,
            parents=indexes,
            answer=candidate.answer,
            check=candidate.check,
        )
        return candidate

    async def _complete(self, test: Test, query: ChatQuery) -> Candidate:
        for message in query.messages:
            logger.debug("prompt_message", test_id=test.id, role=message.role, content=message.content)

        completion = await self._run_completion(query)
        logger.debug("completion_received", test_id=test.id, content=completion.content)

        answer = self._dataset.parse_answer(completion.content)
        check = await check_answer(self._dataset, test, answer)
        await store_completion(self._store, test, query, completion, check)

        return Candidate(explanation=completion.content, answer=answer, check=check)
