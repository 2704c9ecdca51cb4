"""Deterministic sampling for crossover parent selection.

Every draw is a pure function of ``(tag, test_id, generation, iteration)``:
a fresh :class:`random.Random` is seeded from the string key, so results do
not depend on process, call order, or any shared generator state.
"""

from __future__ import annotations

import random

DEFAULT_TAG = "EE-CROSSOVER"


def seed_key(test_id: str, generation: int, iteration: int, tag: str = DEFAULT_TAG) -> str:
    return f"{tag}-{test_id}-{generation}-{iteration}"


def sample(test_id: str, generation: int, iteration: int, tag: str = DEFAULT_TAG) -> random.Random:
    """Return a new RNG stream for one (test, generation, iteration) triple."""
    # str seeds are hashed with SHA-512, independent of PYTHONHASHSEED.
    return random.Random(seed_key(test_id, generation, iteration, tag))


def select_parents(
    test_id: str,
    generation: int,
    iteration: int,
    pool_size: int,
    max_crossovers: int,
    tag: str = DEFAULT_TAG,
) -> list[int]:
    """Pick between 2 and ``max_crossovers - 1`` distinct pool indices.

    The parent count is drawn uniformly from ``[2, max_crossovers)``; indices
    are drawn uniformly, redrawing on collision.
    """
    if max_crossovers < 3:
        raise ValueError(f"max_crossovers must be >= 3, got {max_crossovers}")

    rng = sample(test_id, generation, iteration, tag)
    count = rng.randrange(2, max_crossovers)
    if count > pool_size:
        raise ValueError(f"Cannot draw {count} distinct parents from a pool of {pool_size}")

    indexes: list[int] = []
    while len(indexes) < count:
        index = rng.randrange(pool_size)
        if index not in indexes:
            indexes.append(index)
    return indexes
