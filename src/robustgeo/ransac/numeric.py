# Andy Zhao
"""
Small numerical helpers shared by the solvers and the a-contrario engine.

- null space extraction of a homogeneous linear system A x = 0 (via SVD)
- real roots of a cubic polynomial
- rank-2 projection of a 3x3 matrix
- log10 binomial coefficient tables
"""

from __future__ import annotations

import numpy as np
from scipy.special import gammaln

from .types import FloatArray, Mat3x3

_LN10 = np.log(10.0)
_ROOT_TOL = 1e-10


def nullspace(A: FloatArray, dim: int = 1) -> FloatArray:
    """
    Return the `dim` right singular vectors of A with the smallest singular
    values, as rows of a (dim, A.shape[1]) array.

    A may be wide (fewer equations than unknowns): full_matrices=True still
    returns a complete orthonormal basis of the unknown space, so the extra
    directions are exactly the null space.
    """
    if A.ndim != 2:
        raise ValueError(f"Expected a 2D matrix, got shape {A.shape}")
    _, _, Vt = np.linalg.svd(A, full_matrices=True)
    return Vt[-dim:][::-1]


def _real_quadratic_roots(c0: float, c1: float, c2: float) -> list[float]:
    if c2 == 0.0:
        return [] if c1 == 0.0 else [-c0 / c1]
    disc = c1 * c1 - 4.0 * c2 * c0
    tol = _ROOT_TOL * c1 * c1
    if disc < -tol:
        return []
    if disc <= tol:
        return [-c1 / (2.0 * c2)]
    # Cancellation-free form
    q = -0.5 * (c1 + np.copysign(np.sqrt(disc), c1))
    return [q / c2, c0 / q]


def solve_cubic(coeffs: FloatArray) -> FloatArray:
    """
    Real roots of c0 + c1*x + c2*x^2 + c3*x^3 = 0 (ascending powers).

    Closed form on the monic cubic x^3 + a x^2 + b x + c, with

        Q = (a^2 - 3b) / 9,   R = (2a^3 - 9ab + 27c) / 54

    R^2 < Q^3 gives three real roots (trigonometric form), R^2 > Q^3 one
    (Cardano), and R^2 = Q^3 a repeated root. Repeated roots are returned once.
    Returns between 0 and 3 roots, sorted. A vanishing leading coefficient
    degrades to the quadratic / linear case.
    """
    c = np.asarray(coeffs, dtype=np.float64)
    if c.shape != (4,):
        raise ValueError(f"Expected 4 cubic coefficients, got shape {c.shape}")

    c0, c1, c2, c3 = (float(v) for v in c)
    if c3 == 0.0:
        return _dedup_sorted(_real_quadratic_roots(c0, c1, c2))

    a, b, cc = c2 / c3, c1 / c3, c0 / c3
    shift = a / 3.0
    # Natural magnitude of the roots, used to scale the tolerances
    scale = max(abs(a) / 3.0, np.sqrt(abs(b) / 3.0), np.cbrt(abs(cc)))
    if scale == 0.0:
        return np.zeros((1,), dtype=np.float64)

    Q = (a * a - 3.0 * b) / 9.0
    R = (2.0 * a ** 3 - 9.0 * a * b + 27.0 * cc) / 54.0

    # Triple root
    if abs(Q) <= _ROOT_TOL * scale ** 2 and abs(R) <= _ROOT_TOL * scale ** 3:
        return np.array([-shift], dtype=np.float64)

    gap = R * R - Q ** 3
    if abs(gap) <= _ROOT_TOL * scale ** 6:
        # One simple root and one double root
        A = -np.cbrt(R)
        roots = [2.0 * A - shift, -A - shift]
    elif gap < 0.0:
        theta = np.arccos(np.clip(R / np.sqrt(Q) ** 3, -1.0, 1.0))
        m = -2.0 * np.sqrt(Q)
        roots = [m * np.cos((theta + k * 2.0 * np.pi) / 3.0) - shift for k in (0, 1, -1)]
    else:
        A = -np.cbrt(R + np.copysign(np.sqrt(gap), R))
        B = Q / A if A != 0.0 else 0.0
        roots = [A + B - shift]
    return _dedup_sorted(roots)


def _dedup_sorted(roots: list[float]) -> FloatArray:
    out: list[float] = []
    for r in sorted(float(v) for v in roots):
        if out and r - out[-1] <= _ROOT_TOL * max(1.0, abs(r)):
            continue
        out.append(r)
    return np.asarray(out, dtype=np.float64)


def enforce_rank2(F: Mat3x3) -> Mat3x3:
    """
    Closest rank-2 matrix in Frobenius norm: zero the smallest singular value.
    """
    U, d, Vt = np.linalg.svd(F)
    d[2] = 0.0
    return U @ np.diag(d) @ Vt


def log10_combi(k: np.ndarray, n: np.ndarray) -> np.ndarray:
    """
    log10 of the binomial coefficient C(n, k), elementwise.

    Outside 0 <= k <= n the coefficient is treated as 1 (log = 0), matching
    the convention of the NFA tables.
    """
    k = np.asarray(k, dtype=np.float64)
    n = np.asarray(n, dtype=np.float64)
    valid = (k >= 0) & (k <= n)
    kk = np.where(valid, k, 0.0)
    nn = np.where(valid, n, 0.0)
    out = (gammaln(nn + 1.0) - gammaln(kk + 1.0) - gammaln(nn - kk + 1.0)) / _LN10
    return np.where(valid, out, 0.0)


def make_log_combi(sample_size: int, n: int) -> tuple[FloatArray, FloatArray]:
    """
    Tabulate, for k = 0..n:
        logc_n[k] = log10 C(n, k)
        logc_k[k] = log10 C(k, sample_size)
    """
    k = np.arange(n + 1, dtype=np.float64)
    logc_n = log10_combi(k, np.full_like(k, float(n)))
    logc_k = log10_combi(np.full_like(k, float(sample_size)), k)
    return logc_n, logc_k
