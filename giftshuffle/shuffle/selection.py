"""Weighted-random choice over remaining stock."""

from __future__ import annotations

import random
from typing import Optional, Sequence, TypeVar

T = TypeVar("T")


def pick_weighted(
    items: Sequence[T],
    weights: Sequence[int],
    rng: Optional[random.Random] = None,
) -> T:
    """Pick one of ``items`` with probability proportional to its weight.

    A ticket is drawn uniformly from ``1..sum(weights)`` and the item whose
    cumulative weight first reaches it wins. Equal weights therefore split
    the odds evenly; no item is favoured by its position. Items with a
    non-positive weight can never be chosen.

    Raises
    ------
    ValueError
        If the sequences differ in length or no item has a positive weight.
    """
    if len(items) != len(weights):
        raise ValueError("items and weights must have the same length")
    total_weight = sum(w for w in weights if w > 0)
    if total_weight <= 0:
        raise ValueError("at least one item needs a positive weight")

    ticket = (rng or random).randint(1, total_weight)
    cumulative = 0
    for item, weight in zip(items, weights):
        if weight <= 0:
            continue
        cumulative += weight
        if ticket <= cumulative:
            return item
    # Unreachable: the last positive weight always closes the range.
    raise AssertionError("weighted pick fell through")


__all__ = ["pick_weighted"]
