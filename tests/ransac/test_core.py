"""
Tests for the fixed-threshold RANSAC driver and the iteration bound.
"""

import numpy as np
import pytest

from robustgeo.ransac.core import ransac, required_iterations
from robustgeo.ransac.fundamental import EightPointSolver
from robustgeo.ransac.fundamental_kernel import FundamentalKernel
from robustgeo.ransac.similarity import compose_rts, apply_rts
from robustgeo.ransac.similarity_kernel import PointRegistrationKernel

from conftest import make_two_view_scene, same_up_to_scale


class TestRequiredIterations:

    def test_all_inliers(self):
        assert required_iterations(p_all_inliers=0.99, inlier_ratio=1.0, sample_size=3) == 1

    def test_no_inliers(self):
        assert required_iterations(p_all_inliers=0.99, inlier_ratio=0.0, sample_size=3) >= 10 ** 9

    def test_known_value(self):
        # log(0.01) / log(1 - 0.5^3) = 34.5
        assert required_iterations(p_all_inliers=0.99, inlier_ratio=0.5, sample_size=3) == 35

    def test_grows_with_sample_size(self):
        k7 = required_iterations(p_all_inliers=0.99, inlier_ratio=0.6, sample_size=7)
        k8 = required_iterations(p_all_inliers=0.99, inlier_ratio=0.6, sample_size=8)
        assert k8 > k7

    def test_invalid_sample_size(self):
        with pytest.raises(ValueError):
            required_iterations(p_all_inliers=0.99, inlier_ratio=0.5, sample_size=0)


class TestFixedThresholdRansac:

    def test_similarity(self, rng, similarity_truth):
        S, t, R = similarity_truth
        x1 = rng.uniform(0.0, 10.0, size=(100, 3))
        x2 = apply_rts(compose_rts(S, t, R), x1)
        x2[70:] = rng.uniform(x2.min(axis=0), x2.max(axis=0), size=(30, 3))

        res = ransac(PointRegistrationKernel(x1, x2), tau=0.1, seed=0)
        assert res is not None
        assert res.num_inliers == 70
        assert np.all(res.inliers[:70])
        assert not np.any(res.inliers[70:])
        assert res.rms_error < 1e-8
        assert res.threshold == 0.1
        assert res.iterations < 2000
        np.testing.assert_allclose(res.model, compose_rts(S, t, R), atol=1e-8)

    def test_fundamental_in_pixels(self, rng):
        s = make_two_view_scene(80, rng)
        x1 = s.x1.copy()
        x2 = s.x2.copy()
        # Near-horizontal epipolar lines: a 100 px vertical shift breaks the match
        x2[60:] += np.array([0.0, 100.0])

        kernel = FundamentalKernel(x1, 640, 480, x2, 640, 480, solver=EightPointSolver())
        res = ransac(kernel, tau=1.0, seed=1)
        assert res is not None
        assert np.all(res.inliers[:60])
        assert res.num_inliers == 60
        assert same_up_to_scale(res.model, s.F, 1e-5)

    def test_not_enough_points(self, rng):
        x = rng.uniform(size=(2, 3))
        assert ransac(PointRegistrationKernel(x, x), tau=1.0) is None

    def test_invalid_tau(self, rng):
        x = rng.uniform(size=(5, 3))
        with pytest.raises(ValueError):
            ransac(PointRegistrationKernel(x, x), tau=0.0)
