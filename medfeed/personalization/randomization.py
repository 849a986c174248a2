"""Unbiased in-place shuffling.

Every surface that should look different on each view (feed queue order,
trending presentation) goes through :func:`shuffle`.
"""

from typing import List, Optional, TypeVar

import numpy as np

T = TypeVar("T")


def shuffle(sequence: List[T], rng: Optional[np.random.Generator] = None) -> List[T]:
    """Shuffle a list in place with a Fisher-Yates walk.

    Walks from the last index down to index 1, swapping element ``i`` with a
    uniformly drawn element ``j`` in ``[0, i]``. Every permutation is equally
    likely; element identity and count are preserved.

    Args:
        sequence: List to shuffle. It is mutated.
        rng: Optional numpy random generator, for reproducible orderings.

    Returns:
        The same list object, now shuffled.
    """
    if rng is None:
        rng = np.random.default_rng()

    for i in range(len(sequence) - 1, 0, -1):
        j = int(rng.integers(0, i + 1))
        sequence[i], sequence[j] = sequence[j], sequence[i]

    return sequence
