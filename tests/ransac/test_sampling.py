"""
Unit tests for uniform index sampling.
"""

from itertools import combinations

import numpy as np
import pytest

from robustgeo.ransac.sampling import (
    uniform_sample,
    uniform_sample_range,
    uniform_sample_set,
    uniform_sample_from,
)


def _sizes():
    # (upper_bound, count) for upper_bound = 1, 2, 4, ..., 512 and count = 1, 2, 4, ..., upper_bound
    upper = 1
    while upper < 513:
        count = 1
        while count <= upper:
            yield upper, count
            count *= 2
        upper *= 2


class TestUniformSample:
    """Test suite for the sampling primitives."""

    def test_no_repetitions(self):
        rng = np.random.default_rng(0)
        for upper, count in _sizes():
            samples = uniform_sample(count, upper, rng)
            assert samples.shape == (count,)
            assert np.all(samples >= 0)
            assert np.all(samples < upper)
            assert len(set(samples.tolist())) == count

    def test_set_variant(self):
        rng = np.random.default_rng(1)
        for upper, count in _sizes():
            samples = uniform_sample_set(count, upper, rng)
            assert isinstance(samples, set)
            assert len(samples) == count
            assert all(0 <= s < upper for s in samples)

    def test_range_variant_covers_whole_range(self):
        rng = np.random.default_rng(2)
        for upper, count in _sizes():
            lower = upper - count
            samples = uniform_sample_range(lower, upper, count, rng)
            assert sorted(samples.tolist()) == list(range(lower, upper))

    def test_range_variant_partial(self):
        samples = uniform_sample_range(10, 20, 4, rng=3)
        assert len(set(samples.tolist())) == 4
        assert np.all((samples >= 10) & (samples < 20))

    def test_full_draw_returns_every_index(self):
        samples = uniform_sample(16, 16, rng=4)
        assert sorted(samples.tolist()) == list(range(16))

    def test_zero_count(self):
        assert uniform_sample(0, 5, rng=0).shape == (0,)

    def test_marginal_probability_is_uniform(self):
        rng = np.random.default_rng(5)
        trials, count, upper = 20000, 3, 10
        hits = np.zeros(upper)
        for _ in range(trials):
            hits[uniform_sample(count, upper, rng)] += 1
        freq = hits / trials
        # Each index is picked with probability count / upper
        np.testing.assert_allclose(freq, count / upper, atol=0.02)

    def test_every_subset_equally_likely(self):
        rng = np.random.default_rng(6)
        trials = 30000
        counts = {c: 0 for c in combinations(range(4), 2)}
        for _ in range(trials):
            counts[tuple(sorted(uniform_sample(2, 4, rng).tolist()))] += 1
        freq = np.array(list(counts.values())) / trials
        np.testing.assert_allclose(freq, 1.0 / 6.0, atol=0.015)

    def test_seed_reproducible(self):
        a = uniform_sample(5, 100, rng=42)
        b = uniform_sample(5, 100, rng=42)
        np.testing.assert_array_equal(a, b)

    def test_count_larger_than_range_raises(self):
        with pytest.raises(ValueError):
            uniform_sample(6, 5)
        with pytest.raises(ValueError):
            uniform_sample_range(3, 5, 3)

    def test_invalid_bounds_raise(self):
        with pytest.raises(ValueError):
            uniform_sample_range(5, 3, 1)
        with pytest.raises(ValueError):
            uniform_sample(-1, 3)


class TestUniformSampleFrom:

    def test_draws_from_pool(self):
        pool = np.array([3, 17, 42, 8, 99])
        samples = uniform_sample_from(3, pool, rng=0)
        assert len(set(samples.tolist())) == 3
        assert set(samples.tolist()) <= set(pool.tolist())

    def test_pool_not_modified(self):
        pool = np.array([3, 17, 42, 8, 99])
        before = pool.copy()
        uniform_sample_from(5, pool, rng=0)
        np.testing.assert_array_equal(pool, before)

    def test_pool_too_small_raises(self):
        with pytest.raises(ValueError):
            uniform_sample_from(4, np.array([1, 2, 3]))
