"""
Random Helpers
Weighted draws shared by the battle AI, rewards, and case openings
"""
import random
from typing import Sequence, TypeVar, Optional

T = TypeVar('T')


def weighted_choice(items: Sequence[T], weights: Sequence[float], rng: Optional[random.Random] = None) -> T:
    """Pick one item with probability proportional to its weight.

    Uses cumulative-sum sampling over a uniform value scaled to the weight
    total. If floating point rounding lets the value run past the last
    bucket, the first item is returned.
    """
    if not items:
        raise ValueError("weighted_choice needs at least one item")
    if len(items) != len(weights):
        raise ValueError("items and weights must have the same length")

    rng = rng or random
    total = sum(weights)
    roll = rng.random() * total

    cumulative = 0.0
    for item, weight in zip(items, weights):
        cumulative += weight
        if roll < cumulative:
            return item

    return items[0]
