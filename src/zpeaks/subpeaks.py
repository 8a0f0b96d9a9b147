"""Decomposition of called peaks into fitted sub-peaks."""

from __future__ import annotations

import logging
import os
from concurrent.futures import ProcessPoolExecutor
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from zpeaks._types import P, GaussianParameters, Region, SkewGaussianParameters, SubPeak
from zpeaks.candidates import candidate_gaussians, find_candidates
from zpeaks.models import GAUSSIAN_MODEL, SKEW_MODEL, CurveModel
from zpeaks.optimize import DEFAULT_STEP_BOUND, optimize, refine_shapes
from zpeaks.pdf import Signal

logger = logging.getLogger(__name__)


def fit(
    values: Sequence[float] | NDArray[np.floating],
    offset: int,
    model: CurveModel[P],
    *,
    step_bound: float = DEFAULT_STEP_BOUND,
) -> list[SubPeak[P]]:
    """Decompose one peak into sub-peaks.

    Runs candidate detection, amplitude initialisation and a joint
    nonlinear fit (followed by shape refinement for skewed models), then
    reports each component's span shifted by *offset* (the peak's
    chromosome start). Sub-peaks are ordered by region start.

    Raises
    ------
    ValueError
        On an empty peak or unpaired zero crossings.
    numpy.linalg.LinAlgError
        When candidate regions make the amplitude system singular.
    """
    y = np.asarray(values, dtype=np.float64).ravel()
    regions = find_candidates(y)
    if not regions:
        return []

    candidates = candidate_gaussians(y, regions, model.parameters.initial)
    result = optimize(y, [c.parameters for c in candidates], model, step_bound=step_bound)
    if model is SKEW_MODEL:
        result = refine_shapes(y, result)
    sub_peaks = [
        SubPeak(region=model.to_region(parameters, offset), parameters=parameters, error=result.rms)
        for parameters in result.parameters
    ]
    return sorted(sub_peaks, key=lambda s: s.region.start)


def fit_skew(
    values: Sequence[float] | NDArray[np.floating],
    offset: int,
    *,
    step_bound: float = DEFAULT_STEP_BOUND,
) -> list[SubPeak[SkewGaussianParameters]]:
    return fit(values, offset, SKEW_MODEL, step_bound=step_bound)


def fit_gaussian(
    values: Sequence[float] | NDArray[np.floating],
    offset: int,
    *,
    step_bound: float = DEFAULT_STEP_BOUND,
) -> list[SubPeak[GaussianParameters]]:
    return fit(values, offset, GAUSSIAN_MODEL, step_bound=step_bound)


def _fit_peak(
    values: NDArray[np.float64],
    peak: Region,
    skewed: bool,
    step_bound: float,
) -> list[SubPeak]:
    """Fit one peak, turning per-peak numeric failures into an empty result."""
    model = SKEW_MODEL if skewed else GAUSSIAN_MODEL
    try:
        return fit(values, peak.start, model, step_bound=step_bound)
    except np.linalg.LinAlgError as exc:
        logger.warning("Singular amplitude system for peak %s, skipping: %s", peak, exc)
    except ValueError as exc:
        logger.warning("Could not decompose peak %s, skipping: %s", peak, exc)
    return []


def run_sub_peaks(
    signal: Signal,
    peaks: Sequence[Region],
    *,
    skewed: bool = True,
    step_bound: float = DEFAULT_STEP_BOUND,
    workers: int | None = None,
) -> list[SubPeak]:
    """Decompose every peak of one chromosome.

    Peaks are independent units of work and run in parallel across
    processes. A peak that fails to decompose yields no sub-peaks and
    does not affect the others.

    Parameters
    ----------
    signal:
        Smoothed chromosome signal.
    peaks:
        Peak regions in chromosome coordinates.
    skewed:
        Fit skewed Gaussians (default) or plain ones.
    step_bound:
        Initial step bound factor for the solver.
    workers:
        Process count. Defaults to ``os.cpu_count()``; 1 runs in-process.

    Returns
    -------
    list[SubPeak]
        Sub-peaks grouped by peak in input order.
    """
    slices = [signal.slice(peak) for peak in peaks]
    workers = workers or os.cpu_count() or 1
    logger.info("Fitting sub-peaks for %d peaks with %d workers...", len(peaks), workers)

    n = len(peaks)
    if workers == 1 or n <= 1:
        results = [_fit_peak(values, peak, skewed, step_bound) for values, peak in zip(slices, peaks)]
    else:
        with ProcessPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(_fit_peak, slices, peaks, [skewed] * n, [step_bound] * n))

    sub_peaks = [sub_peak for result in results for sub_peak in result]
    logger.info("Found %d sub-peaks in %d peaks", len(sub_peaks), n)
    return sub_peaks
