# Andy Zhao
"""
Fundamental matrix solvers and epipolar error metrics.

For a correspondence x1 <-> x2 (homogeneous image points) the fundamental
matrix F satisfies the epipolar constraint:

    x2^T F x1 = 0

Writing F row-major as f = [F00, F01, F02, F10, ..., F22], each correspondence
gives one linear equation a_i . f = 0 with

    a_i = [x2*x1, x2*y1, x2, y2*x1, y2*y1, y2, x1, y1, 1]

Stacking the rows gives the homogeneous system A f = 0.

- 8-point: A has a 1D null space -> f directly.
- 7-point: A has a 2D null space spanned by F1, F2. The true F = F1 + a*F2 must
  be singular (rank 2), so det(F1 + a*F2) = 0 is a cubic in a with 1 to 3
  distinct real roots, each giving one candidate.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar, Optional, Sequence

import numpy as np

from .numeric import nullspace, solve_cubic, enforce_rank2
from .types import (
    Points2D, Mat3x3, FloatArray,
    as_homogeneous, check_correspondences, is_valid_matrix)


# ---------- Linear system ----------
def encode_epipolar_equation(
        x1: Points2D,
        x2: Points2D,
        weights: Optional[Sequence[float]] = None,
        min_rows: int = 0,
) -> FloatArray:
    """
    Build the (max(N, min_rows), 9) epipolar design matrix.

    Rows beyond N are zero, so a minimal 7 point system can be padded to a
    square 9x9 matrix without changing its null space.
    """
    n = x1.shape[0]
    h1 = as_homogeneous(x1)
    h2 = as_homogeneous(x2)

    A = np.zeros((max(n, min_rows), 9), dtype=np.float64)
    # Row i = kron(x2_i, x1_i)
    A[:n] = (h2[:, :, None] * h1[:, None, :]).reshape(n, 9)

    if weights is not None:
        w = np.asarray(weights, dtype=np.float64)
        if w.shape != (n,):
            raise ValueError(f"Expected {n} weights, got shape {w.shape}")
        if np.any(w < 0):
            raise ValueError("weights must be non-negative")
        A[:n] *= w[:, None]
    return A


def _det_cubic_coefficients(F1: Mat3x3, F2: Mat3x3) -> FloatArray:
    """
    Coefficients (ascending powers) of p(a) = det(F1 + a*F2).

    p(0) = c0 and the leading coefficient c3 = det(F2). Evaluating at a = +1
    and a = -1 gives the two middle coefficients:
        p(1)  = c0 + c1 + c2 + c3
        p(-1) = c0 - c1 + c2 - c3
    """
    c0 = np.linalg.det(F1)
    c3 = np.linalg.det(F2)
    p_plus = np.linalg.det(F1 + F2)
    p_minus = np.linalg.det(F1 - F2)
    c1 = 0.5 * (p_plus - p_minus) - c3
    c2 = 0.5 * (p_plus + p_minus) - c0
    return np.array([c0, c1, c2, c3], dtype=np.float64)


# ---------- Solvers ----------
@dataclass(frozen=True)
class SevenPointSolver:
    """
    Minimal 7-point fundamental matrix solver (up to 3 solutions).

    With more than 7 points the same null-space / cubic procedure runs on the
    N x 9 system. If the configuration is degenerate (pure rotation, all points
    on a plane, an image matched against itself) the null space has dimension
    > 2; only its first two vectors are used and the candidates are not
    meaningful. This is not detected here: such samples simply score badly.
    """

    MINIMUM_SAMPLES: ClassVar[int] = 7
    MAX_MODELS: ClassVar[int] = 3

    def solve(self, x1: Points2D, x2: Points2D) -> list[Mat3x3]:
        check_correspondences(x1, x2, dim=2, min_count=self.MINIMUM_SAMPLES)

        # Pad the minimal system to 9x9
        A = encode_epipolar_equation(x1, x2, min_rows=9)
        try:
            f1, f2 = nullspace(A, dim=2)
        except np.linalg.LinAlgError:
            return []

        F1 = f1.reshape(3, 3)
        F2 = f2.reshape(3, 3)

        # det(F1 + a*F2) = 0
        roots = solve_cubic(_det_cubic_coefficients(F1, F2))

        models = [F1 + float(a) * F2 for a in roots]
        return [F for F in models if is_valid_matrix(F, (3, 3))]


@dataclass(frozen=True)
class EightPointSolver:
    """
    Linear 8-point fundamental matrix solver (exactly 1 solution).

    Optional non-negative weights scale each epipolar equation, which lets
    the same solver run a weighted least-squares refit.
    """

    MINIMUM_SAMPLES: ClassVar[int] = 8
    MAX_MODELS: ClassVar[int] = 1

    def solve(
            self,
            x1: Points2D,
            x2: Points2D,
            weights: Optional[Sequence[float]] = None,
    ) -> list[Mat3x3]:
        check_correspondences(x1, x2, dim=2, min_count=self.MINIMUM_SAMPLES)

        A = encode_epipolar_equation(x1, x2, weights=weights, min_rows=9)
        try:
            (f,) = nullspace(A, dim=1)
        except np.linalg.LinAlgError:
            return []
        F = f.reshape(3, 3)

        # Over-determined: the least-squares solution is generally full rank,
        # project it back onto the rank-2 manifold (HZ 11.1.1)
        if x1.shape[0] > self.MINIMUM_SAMPLES:
            F = enforce_rank2(F)
        return [F]


# ---------- Image size normalization ----------
def preconditioner_from_image_size(width: int, height: int) -> Mat3x3:
    """
    Similarity that centers the image and scales it by 1/sqrt(w*h):

        [ s  0  -s*w/2 ]
        [ 0  s  -s*h/2 ]      s = 1 / sqrt(w*h)
        [ 0  0     1   ]
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image size must be positive, got {width}x{height}")
    s = 1.0 / np.sqrt(float(width) * float(height))
    return np.array(
        [
            [s, 0.0, -0.5 * width * s],
            [0.0, s, -0.5 * height * s],
            [0.0, 0.0, 1.0],
        ],
        dtype=np.float64,
    )


def apply_normalization(N: Mat3x3, pts: Points2D) -> Points2D:
    """
    Apply a 3x3 affine normalizer to (N,2) points.
    """
    ph = as_homogeneous(pts) @ N.T
    return ph[:, :2] / ph[:, 2:3]


def unnormalize_fundamental(F: Mat3x3, N1: Mat3x3, N2: Mat3x3) -> Mat3x3:
    """
    F estimated on normalized points x' = N x maps back as F = N2^T F' N1.
    """
    return N2.T @ F @ N1


# ---------- Error metrics ----------
def _epipolar_terms(F: Mat3x3, x1: Points2D, x2: Points2D) -> tuple[FloatArray, FloatArray, FloatArray]:
    """
    Return (x2^T F x1, F x1, F^T x2) for every correspondence.
    """
    h1 = as_homogeneous(np.atleast_2d(x1))
    h2 = as_homogeneous(np.atleast_2d(x2))
    Fx1 = h1 @ F.T       # epipolar lines in image 2, (N,3)
    Ftx2 = h2 @ F        # epipolar lines in image 1, (N,3)
    x2Fx1 = np.sum(h2 * Fx1, axis=1)
    return x2Fx1, Fx1, Ftx2


class _FundamentalError(ABC):
    """
    Shared scalar entry point: error() is errors() on a single pair.
    """

    squared: ClassVar[bool] = True

    @abstractmethod
    def errors(self, model: Mat3x3, x1: Points2D, x2: Points2D) -> FloatArray:
        ...

    def error(self, model: Mat3x3, p1: FloatArray, p2: FloatArray) -> float:
        return float(self.errors(model, np.atleast_2d(p1), np.atleast_2d(p2))[0])


@dataclass(frozen=True)
class EpipolarDistanceError(_FundamentalError):
    """
    Squared distance of x2 to the epipolar line F x1.
    """

    def errors(self, model: Mat3x3, x1: Points2D, x2: Points2D) -> FloatArray:
        x2Fx1, Fx1, _ = _epipolar_terms(model, x1, x2)
        denom = Fx1[:, 0] ** 2 + Fx1[:, 1] ** 2
        with np.errstate(divide="ignore", invalid="ignore"):
            err = x2Fx1 ** 2 / denom
        return np.where(np.isfinite(err), err, np.inf)


@dataclass(frozen=True)
class SymmetricEpipolarDistanceError(_FundamentalError):
    """
    Sum of squared point-to-epipolar-line distances in both images.
    """

    def errors(self, model: Mat3x3, x1: Points2D, x2: Points2D) -> FloatArray:
        x2Fx1, Fx1, Ftx2 = _epipolar_terms(model, x1, x2)
        d1 = Fx1[:, 0] ** 2 + Fx1[:, 1] ** 2
        d2 = Ftx2[:, 0] ** 2 + Ftx2[:, 1] ** 2
        with np.errstate(divide="ignore", invalid="ignore"):
            err = x2Fx1 ** 2 * (1.0 / d1 + 1.0 / d2)
        return np.where(np.isfinite(err), err, np.inf)


@dataclass(frozen=True)
class SampsonError(_FundamentalError):
    """
    First order approximation of the squared geometric reprojection error.
    """

    def errors(self, model: Mat3x3, x1: Points2D, x2: Points2D) -> FloatArray:
        x2Fx1, Fx1, Ftx2 = _epipolar_terms(model, x1, x2)
        denom = Fx1[:, 0] ** 2 + Fx1[:, 1] ** 2 + Ftx2[:, 0] ** 2 + Ftx2[:, 1] ** 2
        with np.errstate(divide="ignore", invalid="ignore"):
            err = x2Fx1 ** 2 / denom
        return np.where(np.isfinite(err), err, np.inf)
