"""
Bandwidth-weighted random selection.
"""

from typing import Callable, Optional, Sequence, TypeVar

import numpy as np

from .network import Relay


T = TypeVar("T")


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    """Create the random source handed to selectors."""
    return np.random.default_rng(seed)


def bandwidth_weight(relay: Relay) -> float:
    return relay.bandwidth


def weighted_sample(candidates: Sequence[T],
                    rng,
                    weight: Callable[[T], float] = bandwidth_weight) -> Optional[T]:
    """Pick one candidate with probability proportional to its weight.

    ``rng`` is anything with a ``random()`` method returning a float in
    [0, 1), such as ``numpy.random.Generator`` or ``random.Random``.
    Candidates should already be filtered to positive weights. A single
    candidate is returned without consuming a draw, and the last candidate
    is returned if rounding leaves the running value above zero.
    """
    if not candidates:
        return None
    if len(candidates) == 1:
        return candidates[0]

    total = float(sum(weight(candidate) for candidate in candidates))
    r = rng.random() * total

    for candidate in candidates:
        r -= weight(candidate)
        if r <= 0:
            return candidate

    return candidates[-1]
