# Andy Zhao
"""
RANSAC package

This module provides:
- Uniform duplicate-free sampling of minimal subsets
- Typed geometry primitives and Solver / ErrorMetric / Kernel protocols
- Fundamental matrix solvers (7-point, 8-point) and epipolar errors
- Similarity (Umeyama) solver, compose / decompose, LM refinement
- A fixed-threshold RANSAC and an a-contrario (automatic threshold) RANSAC
"""

from .types import (
    FloatArray, BoolArray, IndexArray, Points2D, Points3D, PointsHomog, Mask,
    Vec3, Mat3x3, Mat4x4,
    Solver, ErrorMetric, Kernel, RansacResult, ConsensusResult,
    as_homogeneous, check_correspondences, is_valid_matrix,
)

from .sampling import (
    uniform_sample, uniform_sample_range, uniform_sample_set, uniform_sample_from,
)

from .numeric import nullspace, solve_cubic, enforce_rank2, make_log_combi

from .fundamental import (
    SevenPointSolver, EightPointSolver,
    EpipolarDistanceError, SymmetricEpipolarDistanceError, SampsonError,
    encode_epipolar_equation, preconditioner_from_image_size,
    apply_normalization, unnormalize_fundamental,
)

from .similarity import (
    SimilaritySolver, SimilarityResidualError, SimilaritySquaredResidualError,
    RefinedSimilarity, compose_rts, decompose_rts, umeyama, find_rts, apply_rts, refine_rts,
)

from .kernel import KernelAdaptor

from .core import ransac, required_iterations

from .acransac import ACRansacParams, ac_ransac, best_nfa

from .fundamental_kernel import FundamentalKernel, ac_ransac_fundamental

from .similarity_kernel import PointRegistrationKernel, SimilarityEstimate, ac_ransac_find_rts

__all__ = [
    "FloatArray", "BoolArray", "IndexArray", "Points2D", "Points3D", "PointsHomog", "Mask",
    "Vec3", "Mat3x3", "Mat4x4",
    "Solver", "ErrorMetric", "Kernel", "RansacResult", "ConsensusResult",
    "as_homogeneous", "check_correspondences", "is_valid_matrix",
    "uniform_sample", "uniform_sample_range", "uniform_sample_set", "uniform_sample_from",
    "nullspace", "solve_cubic", "enforce_rank2", "make_log_combi",
    "SevenPointSolver", "EightPointSolver",
    "EpipolarDistanceError", "SymmetricEpipolarDistanceError", "SampsonError",
    "encode_epipolar_equation", "preconditioner_from_image_size",
    "apply_normalization", "unnormalize_fundamental",
    "SimilaritySolver", "SimilarityResidualError", "SimilaritySquaredResidualError",
    "RefinedSimilarity", "compose_rts", "decompose_rts", "umeyama", "find_rts", "apply_rts", "refine_rts",
    "KernelAdaptor",
    "ransac", "required_iterations",
    "ACRansacParams", "ac_ransac", "best_nfa",
    "FundamentalKernel", "ac_ransac_fundamental",
    "PointRegistrationKernel", "SimilarityEstimate", "ac_ransac_find_rts",
]
