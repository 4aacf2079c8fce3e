"""
Unit tests for the kernel adaptors.
"""

import math

import numpy as np
import pytest

from robustgeo.ransac.fundamental import (
    SevenPointSolver, EightPointSolver, EpipolarDistanceError, SampsonError,
)
from robustgeo.ransac.fundamental_kernel import FundamentalKernel
from robustgeo.ransac.kernel import KernelAdaptor
from robustgeo.ransac.similarity import (
    SimilaritySolver, SimilarityResidualError, SimilaritySquaredResidualError,
    compose_rts, apply_rts,
)
from robustgeo.ransac.similarity_kernel import PointRegistrationKernel

from conftest import make_two_view_scene, same_up_to_scale


@pytest.fixture
def registration(rng, similarity_truth):
    S, t, R = similarity_truth
    x1 = rng.uniform(-5.0, 5.0, size=(12, 3))
    x2 = apply_rts(compose_rts(S, t, R), x1)
    x2[0] += np.array([0.0, 2.0, 0.0])
    return x1, x2, compose_rts(S, t, R)


class TestKernelAdaptor:

    def test_constants_come_from_solver(self, registration):
        x1, x2, _ = registration
        kernel = KernelAdaptor(x1, x2, SimilaritySolver(), SimilarityResidualError())
        assert kernel.min_samples == 3
        assert kernel.max_models == 1
        assert kernel.num_samples == 12
        assert kernel.logalpha0 == 0.0
        assert kernel.mult_error == 1.0

    def test_fit_uses_selected_rows(self, registration):
        x1, x2, RTS = registration
        kernel = KernelAdaptor(x1, x2, SimilaritySolver(), SimilarityResidualError())
        models = kernel.fit([3, 5, 7, 9])
        assert len(models) == 1
        np.testing.assert_allclose(models[0], RTS, atol=1e-9)

    def test_signed_metric_is_squared(self, registration):
        x1, x2, RTS = registration
        plain = KernelAdaptor(x1, x2, SimilaritySolver(), SimilarityResidualError())
        squared = KernelAdaptor(x1, x2, SimilaritySolver(), SimilaritySquaredResidualError())

        np.testing.assert_allclose(plain.errors(RTS), squared.errors(RTS))
        assert plain.errors(RTS)[0] == pytest.approx(4.0)
        assert plain.error(0, RTS) == pytest.approx(4.0)
        assert squared.error(0, RTS) == pytest.approx(4.0)

    def test_identity_normalization(self, registration):
        x1, x2, RTS = registration
        kernel = KernelAdaptor(x1, x2, SimilaritySolver(), SimilarityResidualError())
        assert kernel.unnormalize(RTS) is RTS
        assert kernel.unnormalize_error(9.0) == pytest.approx(3.0)
        assert kernel.normalize_threshold(3.0) == pytest.approx(9.0)

    def test_mismatched_shapes_raise(self, rng):
        with pytest.raises(ValueError):
            KernelAdaptor(rng.normal(size=(5, 3)), rng.normal(size=(6, 3)),
                          SimilaritySolver(), SimilarityResidualError())


class TestPointRegistrationKernel:

    def test_defaults(self, registration):
        x1, x2, _ = registration
        kernel = PointRegistrationKernel(x1, x2)
        assert kernel.logalpha0 == pytest.approx(math.log10(math.pi))
        assert kernel.mult_error == 1.0
        assert isinstance(kernel.solver, SimilaritySolver)

    def test_rejects_2d_points(self, rng):
        with pytest.raises(ValueError):
            PointRegistrationKernel(rng.normal(size=(5, 2)), rng.normal(size=(5, 2)))


class TestFundamentalKernel:

    def test_point_to_line_constants(self, rng):
        s = make_two_view_scene(20, rng)
        kernel = FundamentalKernel(s.x1, 640, 480, s.x2, 640, 480)
        N2 = kernel.normalizer2
        expected = math.log10(2.0 * math.hypot(640, 480) / (640 * 480) / N2[0, 0])
        assert kernel.logalpha0 == pytest.approx(expected)
        assert kernel.mult_error == 0.5
        assert kernel.min_samples == 7
        assert kernel.max_models == 3

    def test_point_to_point_constants(self, rng):
        s = make_two_view_scene(20, rng)
        kernel = FundamentalKernel(s.x1, 640, 480, s.x2, 640, 480,
                                   error_metric=SampsonError(), point_to_line=False)
        N2 = kernel.normalizer2
        expected = math.log10(math.pi / (640 * 480) / (N2[0, 0] ** 2))
        assert kernel.logalpha0 == pytest.approx(expected)
        assert kernel.mult_error == 1.0

    def test_fit_and_unnormalize(self, rng):
        s = make_two_view_scene(20, rng)
        kernel = FundamentalKernel(s.x1, 640, 480, s.x2, 640, 480, solver=EightPointSolver())
        (Fn,) = kernel.fit(np.arange(20))
        np.testing.assert_allclose(kernel.errors(Fn), 0.0, atol=1e-18)
        assert same_up_to_scale(kernel.unnormalize(Fn), s.F, 1e-6)

    def test_threshold_round_trip(self, rng):
        s = make_two_view_scene(10, rng)
        kernel = FundamentalKernel(s.x1, 640, 480, s.x2, 640, 480)
        e2 = kernel.normalize_threshold(2.0)
        assert kernel.unnormalize_error(e2) == pytest.approx(2.0)

    def test_errors_are_pixel_distances_after_unnormalize(self, rng):
        s = make_two_view_scene(20, rng)
        kernel = FundamentalKernel(s.x1, 640, 480, s.x2, 640, 480, solver=SevenPointSolver())
        x2 = s.x2.copy()
        x2[:, 1] += 3.0
        F = s.F
        # Normalized-space error maps back to the pixel distance
        N1, N2 = kernel.normalizer1, kernel.normalizer2
        Fn = np.linalg.inv(N2).T @ F @ np.linalg.inv(N1)
        pix = EpipolarDistanceError().errors(F, s.x1, x2)
        shifted = FundamentalKernel(s.x1, 640, 480, x2, 640, 480)
        norm_err = shifted.errors(Fn)
        np.testing.assert_allclose([shifted.unnormalize_error(e) for e in norm_err],
                                   np.sqrt(pix), rtol=1e-6)
