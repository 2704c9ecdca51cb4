"""Dataset collaborators and a name registry for the driver."""

from __future__ import annotations

from typing import Any, Callable

from evolving_explanations.datasets.base import Dataset, Example, MaxTokens, Test

DATASET_REGISTRY: dict[str, Callable[..., Dataset]] = {}


def register_dataset(name: str):
    """Register a dataset factory by name."""

    def decorator(cls):
        DATASET_REGISTRY[name] = cls
        return cls

    return decorator


def get_dataset(name: str, **kwargs: Any) -> Dataset:
    """Instantiate a registered dataset implementation."""
    # Importing registers the built-in implementations.
    from evolving_explanations.datasets import jsonl  # noqa: F401

    if name not in DATASET_REGISTRY:
        available = ", ".join(sorted(DATASET_REGISTRY)) or "<none>"
        raise ValueError(f"Unknown dataset {name}. Available: {available}")
    return DATASET_REGISTRY[name](**kwargs)


__all__ = [
    "DATASET_REGISTRY",
    "Dataset",
    "Example",
    "MaxTokens",
    "Test",
    "get_dataset",
    "register_dataset",
]
