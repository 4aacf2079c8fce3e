# Andy Zhao
"""
3D similarity model (7 dof): uniform scale, rotation, translation.

We estimate (S, R, t) such that:

    x2  ≈  S * R @ x1 + t

stored as a 4x4 homogeneous matrix:

    RTS = [[S*R, t],
           [0 0 0, 1]]

Closed-form least squares from Umeyama:
    "Least-squares estimation of transformation parameters between two point
    patterns", S. Umeyama, PAMI 1991.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional

import cv2
import numpy as np
from scipy.optimize import least_squares

from .types import (
    Points3D, Mat3x3, Mat4x4, Vec3, FloatArray,
    check_correspondences, is_valid_matrix)

_EPS = float(np.finfo(np.float64).eps)


# ---------- Compose / decompose ----------
def compose_rts(S: float, t: Vec3, R: Mat3x3) -> Mat4x4:
    """
    Build [S*R | t; 0 0 0 1].
    """
    RTS = np.eye(4, dtype=np.float64)
    RTS[:3, :3] = float(S) * np.asarray(R, dtype=np.float64)
    RTS[:3, 3] = np.asarray(t, dtype=np.float64).reshape(3)
    return RTS


def decompose_rts(RTS: Mat4x4) -> Optional[tuple[float, Vec3, Mat3x3]]:
    """
    Split a similarity matrix into (S, t, R).

    S = det(S*R)^(1/3) since det(R) = 1.
    Returns None if the 3x3 block is a reflection / singular, or if the scale
    collapses (all points coincident).
    """
    if RTS.shape != (4, 4):
        raise ValueError(f"Expected RTS shape (4,4), got {RTS.shape}")
    if not np.isfinite(RTS).all():
        return None

    block = RTS[:3, :3]
    det = float(np.linalg.det(block))
    if det <= 0.0:
        return None

    S = float(np.cbrt(det))
    if S < _EPS:
        return None

    R = block / S
    t = RTS[:3, 3].copy()
    return S, t, R


# ---------- Umeyama ----------
def umeyama(x1: Points3D, x2: Points3D, with_scaling: bool = True) -> Mat4x4:
    """
    Least-squares similarity mapping x1 onto x2, shape (N,3) each.

    1) center both clouds
    2) SVD of the cross covariance  Sigma = Y^T X / N = U D V^T
    3) R = U diag(1, 1, s) V^T with s = -1 if needed so det(R) = +1
    4) S = trace(D diag(1,1,s)) / var(X),  t = mean2 - S R mean1

    Coincident source points (zero variance) give a zero scale, which
    decompose_rts rejects.
    """
    n = x1.shape[0]
    mean1 = x1.mean(axis=0)
    mean2 = x2.mean(axis=0)
    X = x1 - mean1
    Y = x2 - mean2

    sigma = (Y.T @ X) / n
    U, D, Vt = np.linalg.svd(sigma)

    signs = np.ones(3, dtype=np.float64)
    if np.linalg.det(U) * np.linalg.det(Vt) < 0:
        signs[2] = -1.0
    R = U @ np.diag(signs) @ Vt

    if with_scaling:
        var1 = float(np.sum(X * X)) / n
        S = float(D @ signs) / var1 if var1 > _EPS else 0.0
    else:
        S = 1.0

    t = mean2 - S * (R @ mean1)
    return compose_rts(S, t, R)


def find_rts(x1: Points3D, x2: Points3D) -> Optional[tuple[float, Vec3, Mat3x3]]:
    """
    Closed-form (S, t, R) from N >= 3 correspondences, or None if degenerate.
    """
    if x1.shape[0] < 3 or x2.shape[0] < 3:
        return None
    check_correspondences(x1, x2, dim=3, min_count=3)
    return decompose_rts(umeyama(x1, x2, with_scaling=True))


def apply_rts(RTS: Mat4x4, pts: Points3D) -> Points3D:
    """
    Apply a 4x4 similarity to (N,3) points.
    """
    if pts.ndim != 2 or pts.shape[1] != 3:
        raise ValueError(f"Expected pts shape (N,3), got {pts.shape}")
    return pts @ RTS[:3, :3].T + RTS[:3, 3]


# ---------- Solver ----------
@dataclass(frozen=True)
class SimilaritySolver:
    """
    Umeyama solver, 3 points minimum, one model per solve.
    """

    MINIMUM_SAMPLES: ClassVar[int] = 3
    MAX_MODELS: ClassVar[int] = 1

    def solve(self, x1: Points3D, x2: Points3D) -> list[Mat4x4]:
        check_correspondences(x1, x2, dim=3, min_count=self.MINIMUM_SAMPLES)
        try:
            RTS = umeyama(x1, x2, with_scaling=True)
        except np.linalg.LinAlgError:
            return []
        # Coincident samples collapse the scale
        if not is_valid_matrix(RTS, (4, 4)) or decompose_rts(RTS) is None:
            return []
        return [RTS]


# ---------- Error metrics ----------
@dataclass(frozen=True)
class SimilarityResidualError:
    """
    Euclidean residual || S R p1 + t - p2 ||.
    """

    squared: ClassVar[bool] = False

    def errors(self, model: Mat4x4, x1: Points3D, x2: Points3D) -> FloatArray:
        return np.linalg.norm(x2 - apply_rts(model, x1), axis=1)

    def error(self, model: Mat4x4, p1: FloatArray, p2: FloatArray) -> float:
        return float(np.linalg.norm(p2 - (model[:3, :3] @ p1 + model[:3, 3])))


@dataclass(frozen=True)
class SimilaritySquaredResidualError:
    """
    Squared residual, avoids the sqrt when only sums of squares are needed.
    """

    squared: ClassVar[bool] = True

    def errors(self, model: Mat4x4, x1: Points3D, x2: Points3D) -> FloatArray:
        diff = x2 - apply_rts(model, x1)
        return np.sum(diff * diff, axis=1)

    def error(self, model: Mat4x4, p1: FloatArray, p2: FloatArray) -> float:
        diff = p2 - (model[:3, :3] @ p1 + model[:3, 3])
        return float(diff @ diff)


# ---------- Refinement ----------
@dataclass(frozen=True)
class RefinedSimilarity:
    S: float
    t: Vec3
    R: Mat3x3
    converged: bool     # False: the optimizer failed, (S, t, R) are the inputs
    cost: float         # 0.5 * sum of squared residuals at the returned parameters


def _pack(S: float, t: Vec3, R: Mat3x3) -> FloatArray:
    rvec, _ = cv2.Rodrigues(np.ascontiguousarray(R, dtype=np.float64))
    return np.concatenate([[S], rvec.reshape(3), np.asarray(t, dtype=np.float64).reshape(3)])


def _unpack(params: FloatArray) -> tuple[float, Vec3, Mat3x3]:
    R, _ = cv2.Rodrigues(np.ascontiguousarray(params[1:4]).reshape(3, 1))
    return float(params[0]), params[4:7].copy(), R


def _rts_residuals(params: FloatArray, x1: Points3D, x2: Points3D) -> FloatArray:
    S, t, R = _unpack(params)
    return (S * (x1 @ R.T) + t - x2).ravel()


def refine_rts(
        x1: Points3D,
        x2: Points3D,
        S: float,
        t: Vec3,
        R: Mat3x3,
        *,
        max_nfev: Optional[int] = None,
) -> RefinedSimilarity:
    """
    Levenberg-Marquardt refinement of (S, R, t) over the given correspondences.

    Rotation is parametrized as an axis-angle vector (Rodrigues), so the
    7 parameters are [S, rx, ry, rz, tx, ty, tz].
    """
    check_correspondences(x1, x2, dim=3, min_count=3)

    x0 = _pack(S, t, R)
    initial_cost = 0.5 * float(np.sum(_rts_residuals(x0, x1, x2) ** 2))

    res = least_squares(_rts_residuals, x0, args=(x1, x2), method="lm", max_nfev=max_nfev)

    if not res.success or not np.isfinite(res.x).all() or res.x[0] <= _EPS:
        return RefinedSimilarity(S=float(S), t=np.asarray(t, dtype=np.float64).reshape(3),
                                 R=np.asarray(R, dtype=np.float64), converged=False,
                                 cost=initial_cost)

    S_ref, t_ref, R_ref = _unpack(res.x)
    return RefinedSimilarity(S=S_ref, t=t_ref, R=R_ref, converged=True, cost=float(res.cost))
