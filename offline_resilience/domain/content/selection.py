"""
Subset selection for question sets.
"""

import random
from typing import List, Optional, Sequence, TypeVar

T = TypeVar("T")


def select_random(
    items: Sequence[T], count: int, rng: Optional[random.Random] = None
) -> List[T]:
    """
    Draw ``count`` items uniformly at random, without replacement.

    Returns every item (in original order) when fewer than ``count`` exist.
    """
    if count <= 0:
        return []
    if len(items) <= count:
        return list(items)
    return (rng or random).sample(list(items), count)
