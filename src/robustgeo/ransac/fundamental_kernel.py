# Andy Zhao
"""
Adapter: fundamental matrix estimation between two images as a Kernel.

Points are normalized with an image size preconditioner before solving
(better conditioned epipolar system), and the winning F is mapped back to
pixel coordinates with unnormalize().
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from .acransac import ACRansacParams, ac_ransac
from .fundamental import (
    SevenPointSolver, EpipolarDistanceError,
    preconditioner_from_image_size, apply_normalization, unnormalize_fundamental)
from .kernel import KernelAdaptor
from .types import Points2D, Mat3x3, Solver, ErrorMetric, ConsensusResult, check_correspondences


class FundamentalKernel(KernelAdaptor[Mat3x3]):
    """
    point_to_line=True: errors are squared distances to epipolar lines, the
        background probability of a distance d is ~ 2*d*D/A
        (D image diagonal, A image area), so alpha grows with sqrt(error)
    point_to_line=False: point-to-point errors, the probability is the
        area of a disc pi*d^2/A, alpha grows with the squared error
    """

    def __init__(
            self,
            x1: Points2D,
            w1: int,
            h1: int,
            x2: Points2D,
            w2: int,
            h2: int,
            solver: Optional[Solver[Mat3x3]] = None,
            error_metric: Optional[ErrorMetric[Mat3x3]] = None,
            *,
            point_to_line: bool = True,
    ) -> None:
        x1 = np.asarray(x1, dtype=np.float64)
        x2 = np.asarray(x2, dtype=np.float64)
        check_correspondences(x1, x2, dim=2, min_count=0)

        N1 = preconditioner_from_image_size(w1, h1)
        N2 = preconditioner_from_image_size(w2, h2)

        if point_to_line:
            diagonal = np.hypot(float(w2), float(h2))
            area = float(w2) * float(h2)
            logalpha0 = np.log10(2.0 * diagonal / area / N2[0, 0])
            mult_error = 0.5
        else:
            area = float(w2) * float(h2)
            logalpha0 = np.log10(np.pi / area / (N2[0, 0] * N2[0, 0]))
            mult_error = 1.0

        super().__init__(
            apply_normalization(N1, x1),
            apply_normalization(N2, x2),
            solver if solver is not None else SevenPointSolver(),
            error_metric if error_metric is not None else EpipolarDistanceError(),
            normalizer1=N1,
            normalizer2=N2,
            logalpha0=float(logalpha0),
            mult_error=mult_error,
        )
        self.point_to_line = point_to_line

    def unnormalize(self, model: Mat3x3) -> Mat3x3:
        return unnormalize_fundamental(model, self.normalizer1, self.normalizer2)


def ac_ransac_fundamental(
        x1: Points2D,
        x2: Points2D,
        image_size1: tuple[int, int],
        image_size2: tuple[int, int],
        *,
        solver: Optional[Solver[Mat3x3]] = None,
        params: Optional[ACRansacParams] = None,
) -> Optional[ConsensusResult[Mat3x3]]:
    """
    Robust fundamental matrix between two images with an automatic threshold.

    image_size1 / image_size2: (width, height) of each image.
    Returns None if no meaningful model was found.
    """
    w1, h1 = image_size1
    w2, h2 = image_size2
    kernel = FundamentalKernel(x1, w1, h1, x2, w2, h2, solver=solver)
    return ac_ransac(kernel, params if params is not None else ACRansacParams())
