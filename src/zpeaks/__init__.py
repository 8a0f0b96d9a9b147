"""zpeaks -- kernel-smoothed peak signal and skewed Gaussian sub-peak decomposition."""

__version__ = "0.1.0"

from zpeaks._types import (
    Background,
    CandidateGaussian,
    GaussianParameters,
    OptimizeResult,
    PileUp,
    Region,
    SkewGaussianParameters,
    SubPeak,
)
from zpeaks.background import BACKGROUND_LIMIT, background
from zpeaks.candidates import SCALE_SPACE_BANDWIDTH, candidate_gaussians, find_candidates
from zpeaks.kernel import lookup_table, window_size
from zpeaks.optimize import (
    DEFAULT_STEP_BOUND,
    MAX_EVALUATIONS,
    MAX_ITERATIONS,
    optimize_gaussian,
    optimize_skew,
    refine_shapes,
)
from zpeaks.pdf import Signal, pdf, smooth, smooth_pileups
from zpeaks.subpeaks import fit_gaussian, fit_skew, run_sub_peaks

__all__ = [
    "BACKGROUND_LIMIT",
    "DEFAULT_STEP_BOUND",
    "MAX_EVALUATIONS",
    "MAX_ITERATIONS",
    "SCALE_SPACE_BANDWIDTH",
    "Background",
    "CandidateGaussian",
    "GaussianParameters",
    "OptimizeResult",
    "PileUp",
    "Region",
    "Signal",
    "SkewGaussianParameters",
    "SubPeak",
    "background",
    "candidate_gaussians",
    "find_candidates",
    "fit_gaussian",
    "fit_skew",
    "lookup_table",
    "optimize_gaussian",
    "optimize_skew",
    "pdf",
    "refine_shapes",
    "run_sub_peaks",
    "smooth",
    "smooth_pileups",
    "window_size",
]
