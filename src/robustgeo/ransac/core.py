# Andy Zhao
"""
Generic fixed-threshold RANSAC loop (model-agnostic).

RANSAC overview:
- Randomly sample a *minimal* subset of correspondences
- Fit candidate models from that subset
- Score all correspondences by computing residual errors
- Mark inliers where error < tau
- Keep the model with the most inliers (and optionally best error)
- Refit using all inliers (least squares) to get the final model

Uses the Kernel Protocol from types.py: the same loop drives fundamental
matrices and similarities. acransac.py replaces the fixed tau with a
threshold chosen from the data.
"""
from __future__ import annotations

from typing import Optional, TypeVar
import logging

import numpy as np

from .sampling import uniform_sample
from .types import Mask, FloatArray, Kernel, RansacResult

M = TypeVar("M")

logger = logging.getLogger(__name__)


def required_iterations(
        *,
        p_all_inliers: float,
        inlier_ratio: float,
        sample_size: int,
) -> int:
    """
    Compute the number of RANSAC iterations needed so that the probability
    of having drawn at least ONE all-inlier minimal sample is >= p_all_inliers.

    inlier ratio w = (# inliers) / N, Minimal sample s = min_samples,
    - P(all-inliers) = w^s
    - P(not-all-inliers) = 1 - w^s
    - P(not-all-inlier-for-k-times) = (1 - w^s)^k
    - P(at-least-once-all-inliers) = 1 - (1 - w^s)^k >= p

    Formula:
       k >= log(1 - p) / log(1 - w^s)

    Edge cases:
     - w == 0  -> impossible, return "infinite-ish" (we'll cap elsewhere)
     - w == 1  -> 1 iteration is enough
    """
    # Clamp inputs to avoid log(0)
    p = float(np.clip(p_all_inliers, 1e-12, 1.0 - 1e-12))
    w = float(np.clip(inlier_ratio, 0.0, 1.0))
    s = int(sample_size)

    if s <= 0:
        raise ValueError("sample_size must be >= 1")

    if w >= 1.0:
        return 1

    if w <= 0.0:
        return int(1e9)

    # If w^s is extremely tiny, log(1 - w^s) close to 0
    w_to_s = float(np.clip(w ** s, 1e-12, 1.0 - 1e-12))

    k = int(np.ceil(np.log(1 - p) / np.log(1 - w_to_s)))
    return max(1, k)


def _rms(err2: FloatArray) -> float:
    return float(np.sqrt(np.mean(err2))) if err2.size else float("inf")


def ransac(
        kernel: Kernel[M],
        *,
        tau: float = 3.0,
        max_iters: int = 2000,
        confidence: float = 0.99,
        seed: Optional[int] = 0,
) -> Optional[RansacResult[M]]:
    """
    Run fixed-threshold RANSAC on a kernel.

    Inputs:
    - kernel: provides min_samples, fit, errors (squared), unnormalize
    - tau: inlier threshold in the caller's units (e.g. pixels)
    - max_iters: upper bound of number of RANSAC iterations
    - confidence: probability of drawing one all-inlier sample, drives the
      adaptive iteration bound
    - seed: RNG seed for reproducibility

    Returns:
    - RansacResult with the refit (unnormalized) model + inlier mask, or None
      if it fails.
    """
    if tau <= 0:
        raise ValueError(f"tau must be > 0, got {tau}")
    if max_iters < 1:
        raise ValueError(f"max_iters must be >= 1, got {max_iters}")

    n = kernel.num_samples
    s = kernel.min_samples
    if n < s:
        logger.warning("RANSAC needs at least %d correspondences, got %d", s, n)
        return None

    # Squared threshold in the kernel's coordinates
    tau2 = kernel.normalize_threshold(tau)

    rng = np.random.default_rng(seed)

    # Track the best hypothesis
    best_model: Optional[M] = None
    best_inliers: Optional[Mask] = None
    best_num_inliers = -1
    best_rms = float("inf")

    # ---------- Adaptive Stopping ----------
    target_iters = max_iters
    iters_run = 0

    # ---------- Main RANSAC Loop ----------
    i = 0
    while i < max_iters and i < target_iters:
        iters_run = i + 1

        sample_idx = uniform_sample(s, n, rng)

        # Fit candidates from the minimal set, empty if degenerate
        for model in kernel.fit(sample_idx):
            err2 = kernel.errors(model)
            inliers: Mask = (err2 < tau2)

            num_inliers = int(np.count_nonzero(inliers))
            if num_inliers < s:
                continue

            rms = _rms(err2[inliers])

            # Primary criterion: more inliers
            # If tie: lower RMS error
            is_better = (num_inliers > best_num_inliers) or (
                    num_inliers == best_num_inliers and rms < best_rms
            )
            if not is_better:
                continue

            best_model = model
            best_inliers = inliers
            best_num_inliers = num_inliers
            best_rms = rms

            w = best_num_inliers / float(n)
            iter_needed = required_iterations(
                p_all_inliers=confidence,
                inlier_ratio=w,
                sample_size=s,
            )
            target_iters = min(target_iters, max(iter_needed, iters_run))
            logger.debug("RANSAC better model: inliers=%d/%d, w=%.3f, target_iters=%d",
                         best_num_inliers, n, w, target_iters)

        i += 1

    if best_model is None or best_inliers is None:
        logger.info("RANSAC found no model with at least %d inliers", s)
        return None

    # Refit on all inliers, keep the candidate with the lowest inlier RMS
    final_model = best_model
    final_rms = best_rms
    for candidate in kernel.fit(np.flatnonzero(best_inliers)):
        rms = _rms(kernel.errors(candidate)[best_inliers])
        if rms < final_rms:
            final_model, final_rms = candidate, rms

    return RansacResult(
        model=kernel.unnormalize(final_model),
        inliers=best_inliers,
        num_inliers=best_num_inliers,
        rms_error=kernel.unnormalize_error(final_rms ** 2),
        iterations=iters_run,
        threshold=float(tau),
    )
