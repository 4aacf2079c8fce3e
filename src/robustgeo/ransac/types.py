# Andy Zhao

"""
Shared typed primitives for the robust estimation engine.

Defines:
- Typed NumPy aliases for geometry
    - Points are (N,2) or (N,3) float arrays, one correspondence per row
    - Models are small fixed-shape matrices (3x3 fundamental, 4x4 similarity)
- Protocols for the pluggable pieces:
    - Solver: minimal sample -> candidate models
    - ErrorMetric: (model, point pair) -> discrepancy
    - Kernel: what the consensus engines drive
- Structured result containers (model + inliers + stats)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, TypeVar, Generic, Optional, TypeAlias, Sequence

import numpy as np
import numpy.typing as npt

# ---------- Numpy typing aliases ----------
# - float64 for geometry / matrices (more stable for linear algebra)
# - intp for index arrays
# - bool_ for masks

FloatArray: TypeAlias = npt.NDArray[np.float64]
BoolArray: TypeAlias = npt.NDArray[np.bool_]
IndexArray: TypeAlias = npt.NDArray[np.intp]

# Points in 2D image coordinates.
Points2D: TypeAlias = FloatArray      # shape: (N, 2)

# Euclidean 3D points.
Points3D: TypeAlias = FloatArray      # shape: (N, 3)

# Homogeneous points [x, y, 1].
PointsHomog: TypeAlias = FloatArray   # shape: (N, 3)

# Boolean inlier mask: True as inlier, False as outlier
Mask: TypeAlias = BoolArray           # shape: (N,)

Vec3: TypeAlias = FloatArray          # shape: (3,)
Mat3x3: TypeAlias = FloatArray        # shape: (3, 3)
Mat4x4: TypeAlias = FloatArray        # shape: (4, 4)

# ---------- Generic model typing ----------
# Fundamental matrices are Mat3x3, similarities are Mat4x4.
M = TypeVar("M")


class Solver(Protocol[M]):
    """
    Minimal solver interface.

    MINIMUM_SAMPLES: number of correspondences that determine the model
    MAX_MODELS: upper bound on the number of candidates one solve can return
    """

    MINIMUM_SAMPLES: int
    MAX_MODELS: int

    def solve(self, x1: FloatArray, x2: FloatArray) -> list[M]:
        """
        Fit candidate models from (N,d) correspondences, N >= MINIMUM_SAMPLES.
        Return an empty list if the sample is degenerate.
        """
        ...


class ErrorMetric(Protocol[M]):
    """
    Per-correspondence discrepancy of a model.

    squared tells the kernel whether the value is already a squared distance.
    """

    squared: bool

    def error(self, model: M, p1: FloatArray, p2: FloatArray) -> float:
        ...

    def errors(self, model: M, x1: FloatArray, x2: FloatArray) -> FloatArray:
        """
        Vectorized version of error(), shape (N,).
        """
        ...


class Kernel(Protocol[M]):
    """
    Interface the consensus engines drive.

    All errors handed to the engine are squared and live in the kernel's
    (possibly normalized) coordinate system.
    """

    @property
    def min_samples(self) -> int: ...

    @property
    def max_models(self) -> int: ...

    @property
    def num_samples(self) -> int: ...

    @property
    def logalpha0(self) -> float: ...

    @property
    def mult_error(self) -> float: ...

    def fit(self, indices: Sequence[int]) -> list[M]: ...

    def error(self, index: int, model: M) -> float: ...

    def errors(self, model: M) -> FloatArray: ...

    def unnormalize(self, model: M) -> M: ...

    def unnormalize_error(self, value: float) -> float: ...

    def normalize_threshold(self, precision: float) -> float: ...


# ---------- Output containers ----------
# frozen=True means "immutable" after construction
@dataclass(frozen=True)
class RansacResult(Generic[M]):
    model: M            # best model found, refit on its inliers
    inliers: Mask       # boolean mask of inliers under the best model
    num_inliers: int    # count of True values in inliers
    rms_error: float    # RMS error of inliers under the refit model
    iterations: int     # how many RANSAC iterations were actually run
    threshold: float    # the inlier threshold tau used


@dataclass(frozen=True)
class ConsensusResult(Generic[M]):
    model: M              # winning model, in the caller's coordinates
    inliers: IndexArray   # sorted, unique indices of supporting correspondences
    threshold: float      # data-derived inlier threshold (unsquared, caller units)
    nfa: float            # log10 number of false alarms, < 0 means meaningful
    iterations: int       # how many iterations were run (all workers)

    @property
    def num_inliers(self) -> int:
        return int(self.inliers.shape[0])


# ---------- Helper Functions ----------
def as_homogeneous(pts: Points2D) -> PointsHomog:
    """
    Convert (N,2) points -> (N,3) homogeneous points: [x, y, 1].
    """
    if pts.ndim != 2 or pts.shape[1] != 2:
        raise ValueError(f"Expected points shape (N, 2) but got {pts.shape}")

    ones = np.ones((pts.shape[0], 1), dtype=np.float64)
    return np.hstack([pts.astype(np.float64), ones])


def check_correspondences(x1: FloatArray, x2: FloatArray, dim: int, min_count: int) -> None:
    """
    Raise ValueError unless x1, x2 are matching (N,dim) arrays with N >= min_count.
    """
    if x1.shape != x2.shape:
        raise ValueError(f"x1 and x2 must have same shape, got {x1.shape} vs {x2.shape}")
    if x1.ndim != 2 or x1.shape[1] != dim:
        raise ValueError(f"Expected points shape (N,{dim}), got {x1.shape}")
    if x1.shape[0] < min_count:
        raise ValueError(f"Need at least {min_count} correspondences, got {x1.shape[0]}")


def is_valid_matrix(T: FloatArray, shape: tuple[int, int]) -> bool:
    """
    Verify a model matrix: right shape and finite.
    Used for rejecting failed fits.
    """
    return isinstance(T, np.ndarray) and T.shape == shape and bool(np.isfinite(T).all())
