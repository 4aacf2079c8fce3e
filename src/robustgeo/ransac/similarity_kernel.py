# Andy Zhao
"""
Adapter: 3D point registration with a similarity, as a Kernel.

No normalization: the points are used as given. The background model for
the a-contrario criterion is a disc of radius sqrt(error), hence
logalpha0 = log10(pi) and mult_error = 1.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import logging
import math

import numpy as np

from .acransac import ACRansacParams, ac_ransac
from .kernel import KernelAdaptor
from .similarity import SimilaritySolver, SimilarityResidualError, decompose_rts, refine_rts
from .types import Points3D, Mat3x3, Mat4x4, Vec3, IndexArray, Solver, ErrorMetric

logger = logging.getLogger(__name__)


class PointRegistrationKernel(KernelAdaptor[Mat4x4]):
    def __init__(
            self,
            x1: Points3D,
            x2: Points3D,
            solver: Optional[Solver[Mat4x4]] = None,
            error_metric: Optional[ErrorMetric[Mat4x4]] = None,
    ) -> None:
        x1 = np.asarray(x1, dtype=np.float64)
        if x1.ndim != 2 or x1.shape[1] != 3:
            raise ValueError(f"Expected points shape (N,3), got {x1.shape}")
        super().__init__(
            x1,
            x2,
            solver if solver is not None else SimilaritySolver(),
            error_metric if error_metric is not None else SimilarityResidualError(),
            logalpha0=math.log10(math.pi),
            mult_error=1.0,
        )


@dataclass(frozen=True)
class SimilarityEstimate:
    S: float
    t: Vec3
    R: Mat3x3
    inliers: IndexArray
    threshold: float                    # selected inlier distance
    nfa: float
    refined: bool                       # True if (S, t, R) come from the refinement
    refine_converged: Optional[bool]    # None when no refinement was asked


def ac_ransac_find_rts(
        x1: Points3D,
        x2: Points3D,
        *,
        refine: bool = False,
        params: Optional[ACRansacParams] = None,
) -> Optional[SimilarityEstimate]:
    """
    Robustly estimate x2 ≈ S * R @ x1 + t with an automatic inlier threshold.

    With refine=True the estimate is polished on the inliers by
    Levenberg-Marquardt. If the refinement fails the unrefined estimate is
    returned with refined=False, refine_converged=False.

    Returns None if no meaningful similarity exists.
    """
    kernel = PointRegistrationKernel(x1, x2)
    result = ac_ransac(kernel, params if params is not None else ACRansacParams())
    if result is None:
        return None

    rts = decompose_rts(result.model)
    if rts is None:
        logger.info("AC-RANSAC model is not a valid similarity")
        return None
    S, t, R = rts

    refined = False
    refine_converged: Optional[bool] = None
    if refine:
        ref = refine_rts(kernel.x1[result.inliers], kernel.x2[result.inliers], S, t, R)
        refine_converged = ref.converged
        if ref.converged:
            S, t, R = ref.S, ref.t, ref.R
            refined = True
        else:
            logger.warning("Similarity refinement did not converge, keeping the closed-form estimate")

    return SimilarityEstimate(
        S=S, t=t, R=R,
        inliers=result.inliers,
        threshold=result.threshold,
        nfa=result.nfa,
        refined=refined,
        refine_converged=refine_converged,
    )
