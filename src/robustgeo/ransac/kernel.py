# Andy Zhao
"""
Kernel adaptor: binds a correspondence set, a solver and an error metric into
the object the consensus engines drive (the Kernel protocol in types.py).

This keeps ransac/core.py and ransac/acransac.py generic and reusable: they
only ever see sample indices, candidate models and squared errors.
"""

from __future__ import annotations

from typing import Generic, Sequence, TypeVar

import numpy as np

from .types import FloatArray, Mat3x3, Solver, ErrorMetric

M = TypeVar("M")


class KernelAdaptor(Generic[M]):
    """
    Generic kernel over (N,d) correspondences x1 <-> x2.

    The stored points are the ones the solver sees (already normalized if the
    subclass normalizes). Errors are always returned squared: metrics that
    report a plain distance are squared here.

    normalizer1 / normalizer2: 3x3 normalizers applied to the inputs (identity
        when the inputs are used as is)
    logalpha0: log10 of the probability for a random point to have error 1
        under the background model, makes the NFA scale invariant
    mult_error: exponent relating squared error to alpha (0.5 when the
        alpha grows linearly with the distance, 1 when with the area)
    """

    def __init__(
            self,
            x1: FloatArray,
            x2: FloatArray,
            solver: Solver[M],
            error_metric: ErrorMetric[M],
            *,
            normalizer1: Mat3x3 | None = None,
            normalizer2: Mat3x3 | None = None,
            logalpha0: float = 0.0,
            mult_error: float = 1.0,
    ) -> None:
        x1 = np.asarray(x1, dtype=np.float64)
        x2 = np.asarray(x2, dtype=np.float64)
        if x1.shape != x2.shape:
            raise ValueError(f"x1 and x2 must have same shape, got {x1.shape} vs {x2.shape}")
        if x1.ndim != 2:
            raise ValueError(f"Expected points shape (N,d), got {x1.shape}")

        self.x1 = x1
        self.x2 = x2
        self.solver = solver
        self.error_metric = error_metric
        self.normalizer1 = np.eye(3) if normalizer1 is None else np.asarray(normalizer1, dtype=np.float64)
        self.normalizer2 = np.eye(3) if normalizer2 is None else np.asarray(normalizer2, dtype=np.float64)
        self._logalpha0 = float(logalpha0)
        self._mult_error = float(mult_error)

    # ---------- Solver-derived constants ----------
    @property
    def min_samples(self) -> int:
        return int(self.solver.MINIMUM_SAMPLES)

    @property
    def max_models(self) -> int:
        return int(self.solver.MAX_MODELS)

    @property
    def num_samples(self) -> int:
        return int(self.x1.shape[0])

    @property
    def logalpha0(self) -> float:
        return self._logalpha0

    @property
    def mult_error(self) -> float:
        return self._mult_error

    # ---------- Fit / score ----------
    def fit(self, indices: Sequence[int]) -> list[M]:
        """
        Run the solver on the selected rows.
        """
        idx = np.asarray(indices, dtype=np.intp)
        return self.solver.solve(self.x1[idx], self.x2[idx])

    def error(self, index: int, model: M) -> float:
        e = self.error_metric.error(model, self.x1[index], self.x2[index])
        return e if self.error_metric.squared else e * e

    def errors(self, model: M) -> FloatArray:
        e = np.asarray(self.error_metric.errors(model, self.x1, self.x2), dtype=np.float64)
        return e if self.error_metric.squared else e * e

    # ---------- Normalization hooks ----------
    def unnormalize(self, model: M) -> M:
        return model

    def unnormalize_error(self, value: float) -> float:
        """
        Squared normalized error -> distance in the caller's units.
        """
        return float(np.sqrt(value)) / float(self.normalizer2[0, 0])

    def normalize_threshold(self, precision: float) -> float:
        """
        Distance in the caller's units -> squared normalized error.
        """
        scale = float(self.normalizer2[0, 0])
        return precision * precision * scale * scale
