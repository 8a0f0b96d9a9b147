"""Levenberg-Marquardt refinement of Gaussian mixtures."""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np
from numpy.typing import NDArray
from scipy.optimize import leastsq, minimize_scalar

from zpeaks._types import P, GaussianParameters, OptimizeResult, SkewGaussianParameters
from zpeaks.models import GAUSSIAN_MODEL, SKEW_MODEL, CurveModel, skew_curve, skew_jacobian

logger = logging.getLogger(__name__)

MAX_EVALUATIONS = 500
MAX_ITERATIONS = 500
DEFAULT_STEP_BOUND = 100.0

# Solver tolerances, relative to the mean observed value.
_COST_TOLERANCE = 1e-4
_PARAMETER_TOLERANCE = 1e-8
_ORTHO_TOLERANCE = 1e-3

# MINPACK return code for an exhausted evaluation budget.
_MAXFEV_REACHED = 5

# Shapes tried per component before the bounded search around the best one.
_SHAPE_GRID = np.linspace(-5.0, 5.0, 21)
_SHAPE_SEARCH_HALF_WIDTH = 0.5
_SHAPE_TOLERANCE = 1e-6
_PROFILE_TOLERANCE = 1e-14


def optimize(
    values: Sequence[float] | NDArray[np.floating],
    gaussians: Sequence[P],
    model: CurveModel[P],
    *,
    step_bound: float = DEFAULT_STEP_BOUND,
) -> OptimizeResult[P]:
    """Jointly refine *gaussians* against *values* with MINPACK ``lmder``.

    Parameters
    ----------
    values:
        Observed signal across the peak; sample ``i`` sits at ``x = i``.
    gaussians:
        Initial guesses, all of the variant described by *model*.
    model:
        Curve, analytic Jacobian and parameter type.
    step_bound:
        Initial step bound factor (MINPACK ``factor``).

    Returns
    -------
    OptimizeResult
        Best parameters found. When the evaluation budget runs out the
        result is still returned, with ``iterations == MAX_ITERATIONS``.
    """
    y = np.asarray(values, dtype=np.float64).ravel()
    if y.size == 0:
        raise ValueError("cannot optimise against an empty peak")
    if not gaussians:
        return OptimizeResult(parameters=[], rms=float(np.sqrt(np.mean(y**2))), iterations=0)

    p0 = np.concatenate([g.as_array() for g in gaussians])
    if p0.size > y.size:
        raise ValueError(f"{p0.size} parameters cannot be fitted to {y.size} samples")

    x = np.arange(y.size, dtype=np.float64)
    scale = max(float(np.mean(y)), 0.0)

    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        popt, _, info, _, ier = leastsq(
            lambda p: model.curve(x, p) - y,
            p0,
            Dfun=lambda p: model.jacobian(x, p),
            full_output=True,
            ftol=scale * _COST_TOLERANCE,
            xtol=scale * _PARAMETER_TOLERANCE,
            gtol=scale * _ORTHO_TOLERANCE,
            maxfev=MAX_EVALUATIONS,
            factor=step_bound,
        )

    converged = ier != _MAXFEV_REACHED
    iterations = min(int(info.get("njev", info["nfev"])), MAX_ITERATIONS)
    if not converged:
        logger.debug("Fit of %d components did not converge within %d evaluations", len(gaussians), MAX_EVALUATIONS)
        iterations = MAX_ITERATIONS

    residual = np.asarray(info["fvec"], dtype=np.float64)
    fitted = [model.parameters.from_array(chunk) for chunk in np.split(np.asarray(popt), len(gaussians))]
    return OptimizeResult(
        parameters=fitted,
        rms=float(np.sqrt(np.mean(residual**2))),
        iterations=iterations,
        converged=converged,
    )


def optimize_skew(
    values: Sequence[float] | NDArray[np.floating],
    gaussians: Sequence[SkewGaussianParameters],
    *,
    step_bound: float = DEFAULT_STEP_BOUND,
) -> OptimizeResult[SkewGaussianParameters]:
    """Refine skewed Gaussian components."""
    return optimize(values, gaussians, SKEW_MODEL, step_bound=step_bound)


def optimize_gaussian(
    values: Sequence[float] | NDArray[np.floating],
    gaussians: Sequence[GaussianParameters],
    *,
    step_bound: float = DEFAULT_STEP_BOUND,
) -> OptimizeResult[GaussianParameters]:
    """Refine plain Gaussian components."""
    return optimize(values, gaussians, GAUSSIAN_MODEL, step_bound=step_bound)


def _fit_with_shapes(
    x: NDArray[np.float64],
    y: NDArray[np.float64],
    params: NDArray[np.float64],
    shapes: NDArray[np.float64],
) -> tuple[NDArray[np.float64], float]:
    """Refit every skewed parameter except the shapes, which stay at *shapes*.

    Returns the full parameter vector and its sum of squared residuals
    (infinite when the fit diverges).
    """
    arity = SkewGaussianParameters.arity
    free = np.ones(params.size, dtype=bool)
    free[arity - 1 :: arity] = False
    base = params.copy()
    base[~free] = shapes

    def expand(p: NDArray[np.float64]) -> NDArray[np.float64]:
        full = base.copy()
        full[free] = p
        return full

    popt, _, info, _, _ = leastsq(
        lambda p: skew_curve(x, expand(p)) - y,
        base[free],
        Dfun=lambda p: skew_jacobian(x, expand(p))[:, free],
        full_output=True,
        ftol=_PROFILE_TOLERANCE,
        xtol=_PROFILE_TOLERANCE,
        gtol=0.0,
    )
    cost = float(np.sum(np.asarray(info["fvec"], dtype=np.float64) ** 2))
    return expand(np.asarray(popt)), cost if np.isfinite(cost) else np.inf


def refine_shapes(
    values: Sequence[float] | NDArray[np.floating],
    result: OptimizeResult[SkewGaussianParameters],
) -> OptimizeResult[SkewGaussianParameters]:
    """Re-estimate each component's shape by profiling the residual over it.

    For narrow components a shape change is almost indistinguishable from
    a small shift of the mean, so the joint fit can stop on a tiny residual
    with the wrong shape. Each component in turn has its shape scanned over
    :data:`_SHAPE_GRID` and then narrowed with a bounded scalar search
    around the best grid point. Every trial shape refits all the other
    parameters with shapes held fixed. A new shape is kept only when it
    lowers the residual.

    ``iterations`` and ``converged`` are carried over from *result*.
    """
    if not result.parameters:
        return result
    y = np.asarray(values, dtype=np.float64).ravel()
    x = np.arange(y.size, dtype=np.float64)
    params = np.concatenate([p.as_array() for p in result.parameters])
    arity = SkewGaussianParameters.arity

    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        cost = float(np.sum((skew_curve(x, params) - y) ** 2))
        if not np.isfinite(cost):
            cost = np.inf

        for k in range(len(result.parameters)):
            shapes = params[arity - 1 :: arity].copy()

            def profile(
                h: float, k: int = k, shapes: NDArray[np.float64] = shapes
            ) -> tuple[NDArray[np.float64], float]:
                trial = shapes.copy()
                trial[k] = h
                return _fit_with_shapes(x, y, params, trial)

            trials = {float(h): profile(h) for h in np.append(_SHAPE_GRID, shapes[k])}
            centre = min(trials, key=lambda h: trials[h][1])
            search = minimize_scalar(
                lambda h: profile(h)[1],
                bounds=(centre - _SHAPE_SEARCH_HALF_WIDTH, centre + _SHAPE_SEARCH_HALF_WIDTH),
                method="bounded",
                options={"xatol": _SHAPE_TOLERANCE},
            )
            trials[float(search.x)] = profile(float(search.x))

            best, best_cost = min(trials.values(), key=lambda t: t[1])
            if best_cost < cost:
                params, cost = best, best_cost

    logger.debug("Shape refinement of %d components left residual %.3g", len(result.parameters), cost)
    fitted = [SkewGaussianParameters.from_array(chunk) for chunk in np.split(params, len(result.parameters))]
    return OptimizeResult(
        parameters=fitted,
        rms=float(np.sqrt(cost / y.size)),
        iterations=result.iterations,
        converged=result.converged,
    )
