"""Model-invocation client.

The evolution core only depends on the :data:`CompletionRunner` callable:
``await run_completion(query) -> Completion``. :class:`CompletionClient`
implements it on top of LiteLLM, which routes ``provider/model`` strings to
100+ providers:

- "openai/gpt-4o" -> OpenAI API
- "anthropic/claude-sonnet-4-20250514" -> Anthropic API
- "ollama/llama3" -> Ollama (local)
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal

import structlog

from evolving_explanations.config import ModelConfig

logger = structlog.get_logger()

# Retry settings for rate limit errors
_MAX_RETRIES = 5
_BASE_DELAY_S = 2.0
_MAX_DELAY_S = 60.0

Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ChatQuery:
    """A fully specified chat completion request."""

    provider: str
    model: str
    messages: list[ChatMessage]
    temperature: float
    max_tokens: int


@dataclass
class Completion:
    content: str
    usage: dict[str, int] = field(default_factory=dict)


CompletionRunner = Callable[[ChatQuery], Awaitable[Completion]]


class CompletionClient:
    """Runs chat queries through LiteLLM with rate-limit retries."""

    def __init__(self, model: ModelConfig, min_request_interval_s: float = 0.0) -> None:
        self._model = model
        self._min_interval = min_request_interval_s
        self._last_request_time: float = 0.0
        self._spacing_lock = asyncio.Lock()

    async def __call__(self, query: ChatQuery) -> Completion:
        return await self.run_completion(query)

    async def run_completion(self, query: ChatQuery) -> Completion:
        """Complete ``query``, retrying on rate limit errors with exponential backoff.

        Any other failure propagates to the caller.
        """
        import litellm

        model = ModelConfig(provider=query.provider, model=query.model).litellm_model
        completion_kwargs: dict[str, Any] = {
            "model": model,
            "messages": [m.to_dict() for m in query.messages],
            "temperature": query.temperature,
            "max_tokens": query.max_tokens,
        }
        if self._model.api_key:
            completion_kwargs["api_key"] = self._model.api_key

        logger.debug("llm_request", model=model, messages=len(query.messages), max_tokens=query.max_tokens)

        last_exc: Exception | None = None
        for attempt in range(_MAX_RETRIES):
            await self._space_requests()
            try:
                response = await litellm.acompletion(**completion_kwargs)
            except litellm.RateLimitError as exc:
                last_exc = exc
                delay = min(_BASE_DELAY_S * (2**attempt), _MAX_DELAY_S)
                logger.warning(
                    "rate_limit_retry",
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                    delay_s=delay,
                    model=model,
                )
                await asyncio.sleep(delay)
                continue

            content = response.choices[0].message.content or ""
            usage = getattr(response, "usage", None)
            logger.debug("llm_response", model=model, length=len(content))
            return Completion(content=content, usage=_usage_dict(usage))

        raise last_exc  # type: ignore[misc]

    async def _space_requests(self) -> None:
        """Ensure a minimum interval between consecutive requests."""
        if self._min_interval <= 0:
            return
        async with self._spacing_lock:
            elapsed = time.monotonic() - self._last_request_time
            if elapsed < self._min_interval:
                await asyncio.sleep(self._min_interval - elapsed)
            self._last_request_time = time.monotonic()


def _usage_dict(usage: Any) -> dict[str, int]:
    if usage is None:
        return {}
    out: dict[str, int] = {}
    for key in ("prompt_tokens", "completion_tokens", "total_tokens"):
        value = getattr(usage, key, None)
        if isinstance(value, int):
            out[key] = value
    return out
