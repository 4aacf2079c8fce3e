# Andy Zhao
"""
A-contrario RANSAC (automatic threshold).

Classic RANSAC needs a user threshold tau. Here the threshold is chosen from
the data: for a candidate model we sort the squared residuals e_(1) <= ... <=
e_(N) and, for every k, ask how likely it is that k correspondences would fit
that well *by chance* (background model: points uniformly spread).

Number of False Alarms for the k best points (log10):

    NFA(k) = log10(MAX_MODELS * (N - s))          # number of tests
           + (k - s) * log10(alpha(e_(k)))         # prob. k - s points fit
           + log10 C(N, k) + log10 C(k, s)          # choices of the subsets

    log10 alpha(e) = logalpha0 + mult_error * log10(e)

where s is the minimal sample size. The model / k with the lowest NFA wins;
NFA < 0 means the consensus is meaningful (expected < 1 false detection).
Its threshold is e_(k).

Reference: Moisan, Moulon, Monasse, "Automatic Homographic Registration of a
Pair of Images, with A Contrario Elimination of Outliers", IPOL 2012.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar
import logging
import math
import time

import numpy as np

from .core import required_iterations
from .numeric import make_log_combi
from .sampling import uniform_sample_from
from .types import FloatArray, IndexArray, Kernel, ConsensusResult

M = TypeVar("M")

logger = logging.getLogger(__name__)

_FLOAT_EPS = float(np.finfo(np.float32).eps)


@dataclass(frozen=True)
class ACRansacParams:
    """
    max_iters: iteration budget (10% of it is reserved for sampling among
        the best inliers once a meaningful model is found)
    precision: upper bound on the inlier threshold, in the caller's units
        (inf = fully automatic)
    confidence: if set, stop early once an all-inlier sample has been drawn
        with this probability at the observed inlier ratio
    seed: RNG seed for reproducibility (None = fresh entropy)
    n_jobs: number of worker threads sharing the iteration budget
    time_budget: wall-clock budget in seconds, checked before each iteration
    """
    max_iters: int = 1024
    precision: float = math.inf
    confidence: Optional[float] = None
    seed: Optional[int] = None
    n_jobs: int = 1
    time_budget: Optional[float] = None

    def __post_init__(self) -> None:
        if self.max_iters < 1:
            raise ValueError(f"max_iters must be >= 1, got {self.max_iters}")
        if self.n_jobs < 1:
            raise ValueError(f"n_jobs must be >= 1, got {self.n_jobs}")
        if not self.precision > 0:
            raise ValueError(f"precision must be > 0, got {self.precision}")
        if self.confidence is not None and not (0.0 < self.confidence < 1.0):
            raise ValueError(f"confidence must be in (0, 1), got {self.confidence}")
        if self.time_budget is not None and self.time_budget < 0:
            raise ValueError(f"time_budget must be >= 0, got {self.time_budget}")


def best_nfa(
        start_index: int,
        logalpha0: float,
        sorted_errors: FloatArray,
        loge0: float,
        max_threshold: float,
        logc_n: FloatArray,
        logc_k: FloatArray,
        mult_error: float = 1.0,
) -> tuple[float, int]:
    """
    Most meaningful inlier count for one model.

    sorted_errors: squared errors in ascending order, shape (N,)
    Returns (min NFA, k). k counts the inliers (the k smallest errors);
    NFA is +inf if no k in [start_index + 1, N] is under max_threshold.
    """
    n = sorted_errors.shape[0]
    k = np.arange(start_index + 1, n + 1)
    e = sorted_errors[start_index:]

    # Errors are sorted: the admissible k form a prefix
    admissible = e <= max_threshold
    k = k[admissible]
    e = e[admissible]
    if k.size == 0:
        return math.inf, start_index

    logalpha = logalpha0 + mult_error * np.log10(e + _FLOAT_EPS)
    nfa = loge0 + logalpha * (k - start_index) + logc_n[k] + logc_k[k]

    i = int(np.argmin(nfa))
    return float(nfa[i]), int(k[i])


# Task-local best hypothesis; merged across workers by min NFA
@dataclass
class _Best(Generic[M]):
    nfa: float = math.inf
    model: Optional[M] = None
    inliers: Optional[IndexArray] = None
    error_max: float = math.inf     # squared, normalized
    iterations: int = 0


def _search(
        kernel: Kernel[M],
        num_iters: int,
        max_threshold: float,
        confidence: Optional[float],
        rng: np.random.Generator,
        deadline: Optional[float],
) -> _Best[M]:
    """
    One sample / fit / score loop over `num_iters` iterations.
    """
    s = kernel.min_samples
    n = kernel.num_samples

    loge0 = math.log10(kernel.max_models * (n - s))
    logc_n, logc_k = make_log_combi(s, n)

    # Until a meaningful model exists, sample among all correspondences
    pool = np.arange(n, dtype=np.intp)

    # Reserve 10% of the iterations for the focused sampling
    reserve = num_iters // 10
    n_iter = num_iters - reserve

    # With a finite precision, only score once some model reaches it
    ac_mode = math.isinf(max_threshold)

    best: _Best[M] = _Best()
    it = 0
    while it < n_iter:
        if deadline is not None and time.monotonic() >= deadline:
            logger.debug("AC-RANSAC time budget exhausted after %d iterations", it)
            break

        sample = uniform_sample_from(s, pool, rng)
        models = kernel.fit(sample)

        better = False
        for model in models:
            err = kernel.errors(model)

            if not ac_mode:
                num_under = int(np.count_nonzero(err <= max_threshold))
                # Is the model meaningful enough to start scoring?
                if num_under > 2.5 * s:
                    ac_mode = True
            if not ac_mode:
                continue

            order = np.argsort(err, kind="stable")
            sorted_err = err[order]
            nfa, k = best_nfa(
                s, kernel.logalpha0, sorted_err, loge0, max_threshold,
                logc_n, logc_k, kernel.mult_error)

            if nfa < best.nfa:
                better = True
                best.nfa = nfa
                best.model = model
                best.inliers = order[:k].copy()
                best.error_max = float(sorted_err[k - 1])
                logger.debug(
                    "AC-RANSAC better model: it=%d nfa=%.3f inliers=%d/%d threshold2=%.6g",
                    it, nfa, k, n, best.error_max)

        it += 1

        # Focused sampling among the best inliers so far
        if ac_mode and ((better and best.nfa < 0) or (it == n_iter and reserve)):
            if best.inliers is None:
                # No model at all yet: keep looking, eating into the reserve
                n_iter += 1
                reserve -= 1
            else:
                pool = best.inliers
                if reserve:
                    n_iter = it + reserve
                    reserve = 0

        if confidence is not None and better and best.nfa < 0 and best.inliers is not None:
            needed = required_iterations(
                p_all_inliers=confidence,
                inlier_ratio=best.inliers.shape[0] / float(n),
                sample_size=s,
            )
            n_iter = min(n_iter, max(needed, it))

    best.iterations = it
    return best


def _split_budget(total: int, parts: int) -> list[int]:
    base, extra = divmod(total, parts)
    return [base + (1 if i < extra else 0) for i in range(parts)]


def ac_ransac(
        kernel: Kernel[M],
        params: ACRansacParams = ACRansacParams(),
) -> Optional[ConsensusResult[M]]:
    """
    Run a-contrario RANSAC on a kernel.

    Returns:
    - ConsensusResult with the unnormalized model, sorted inlier indices,
      the selected threshold (unsquared, caller units) and the NFA
    - None if there is not enough data or no meaningful model was found
    """
    s = kernel.min_samples
    n = kernel.num_samples
    if n <= s:
        logger.warning("AC-RANSAC needs more than %d correspondences, got %d", s, n)
        return None

    max_threshold = (
        math.inf if math.isinf(params.precision)
        else kernel.normalize_threshold(params.precision))

    deadline = (
        None if params.time_budget is None
        else time.monotonic() + params.time_budget)

    n_jobs = min(params.n_jobs, params.max_iters)
    if n_jobs == 1:
        rng = np.random.default_rng(params.seed)
        results = [_search(kernel, params.max_iters, max_threshold, params.confidence, rng, deadline)]
    else:
        # Independent streams per worker, no shared mutable state: each task
        # returns its own best and the results are reduced below
        seeds = np.random.SeedSequence(params.seed).spawn(n_jobs)
        budgets = _split_budget(params.max_iters, n_jobs)
        with ThreadPoolExecutor(max_workers=n_jobs) as pool:
            futures = [
                pool.submit(_search, kernel, budget, max_threshold, params.confidence,
                            np.random.default_rng(seed), deadline)
                for budget, seed in zip(budgets, seeds)
            ]
            results = [f.result() for f in futures]

    best = min(results, key=lambda r: r.nfa)
    iterations = sum(r.iterations for r in results)

    if best.model is None or best.inliers is None or best.nfa >= 0:
        logger.info("AC-RANSAC found no meaningful model (%d iterations, best nfa=%s)",
                    iterations, best.nfa)
        return None

    threshold = kernel.unnormalize_error(best.error_max)
    logger.debug("AC-RANSAC done: nfa=%.3f inliers=%d/%d threshold=%.6g iterations=%d",
                 best.nfa, best.inliers.shape[0], n, threshold, iterations)

    return ConsensusResult(
        model=kernel.unnormalize(best.model),
        inliers=np.sort(best.inliers),
        threshold=threshold,
        nfa=best.nfa,
        iterations=iterations,
    )
