"""Model invocation."""

from __future__ import annotations

from evolving_explanations.llm.client import (
    ChatMessage,
    ChatQuery,
    Completion,
    CompletionClient,
    CompletionRunner,
)

__all__ = ["ChatMessage", "ChatQuery", "Completion", "CompletionClient", "CompletionRunner"]
