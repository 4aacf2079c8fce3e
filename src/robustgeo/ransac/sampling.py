# Andy Zhao
"""
Uniform random sampling of distinct indices.

Every RANSAC iteration needs a minimal sample: `count` correspondences drawn
uniformly without repetition. We use a partial Fisher-Yates shuffle:

    pool = [lo, lo+1, ..., hi-1]
    for i in 0..count-1:
        j = random index in [i, len(pool))
        swap(pool[i], pool[j])
    return pool[:count]

After i steps, pool[:i] is a uniformly random i-subset (in random order), so
every count-subset is equally likely, there are never duplicates, and there is
no rejection loop (O(count) random draws, whatever the ratio count / range).
"""

from __future__ import annotations

from typing import Optional, Union

import numpy as np

from .types import IndexArray

RngLike = Union[np.random.Generator, int, None]


def as_generator(rng: RngLike) -> np.random.Generator:
    """
    Accept a Generator, a seed, or None (fresh entropy).
    """
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)


def _partial_shuffle(pool: IndexArray, count: int, rng: np.random.Generator) -> IndexArray:
    """
    Move `count` uniformly chosen entries of `pool` to its front (in place).
    """
    n = pool.shape[0]
    # One batch of draws: j_i uniform in [i, n)
    picks = rng.integers(np.arange(count), n)
    for i in range(count):
        j = int(picks[i])
        pool[i], pool[j] = pool[j], pool[i]
    return pool[:count]


def uniform_sample_range(
        lower_bound: int,
        upper_bound: int,
        count: int,
        rng: RngLike = None,
) -> IndexArray:
    """
    Draw `count` distinct indices uniformly from [lower_bound, upper_bound).

    count == upper_bound - lower_bound returns every index of the range once
    (in random order). Asking for more indices than the range holds is a
    caller bug and raises ValueError.
    """
    if lower_bound > upper_bound:
        raise ValueError(f"lower_bound {lower_bound} > upper_bound {upper_bound}")
    if count < 0:
        raise ValueError(f"count must be >= 0, got {count}")
    if count > upper_bound - lower_bound:
        raise ValueError(
            f"Cannot draw {count} distinct indices from [{lower_bound}, {upper_bound})")

    pool = np.arange(lower_bound, upper_bound, dtype=np.intp)
    return _partial_shuffle(pool, count, as_generator(rng)).copy()


def uniform_sample(count: int, upper_bound: int, rng: RngLike = None) -> IndexArray:
    """
    Draw `count` distinct indices uniformly from [0, upper_bound).
    """
    return uniform_sample_range(0, upper_bound, count, rng)


def uniform_sample_set(count: int, upper_bound: int, rng: RngLike = None) -> set[int]:
    """
    Same draw as uniform_sample, returned as an unordered set.
    """
    return {int(i) for i in uniform_sample(count, upper_bound, rng)}


def uniform_sample_from(count: int, pool: IndexArray, rng: RngLike = None) -> IndexArray:
    """
    Draw `count` distinct entries from an explicit index pool.

    Used by the a-contrario engine to sample among the best inliers so far.
    The pool itself is not modified.
    """
    pool = np.asarray(pool, dtype=np.intp)
    if pool.ndim != 1:
        raise ValueError(f"Expected a 1D index pool, got shape {pool.shape}")
    if count < 0 or count > pool.shape[0]:
        raise ValueError(f"Cannot draw {count} distinct entries from a pool of {pool.shape[0]}")

    positions = uniform_sample(count, pool.shape[0], rng)
    return pool[positions]
