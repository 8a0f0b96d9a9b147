"""Skewed and plain Gaussian curve models with analytic Jacobians.

Each component ``k`` contributes::

    f_k(x) = a_k**2 / s_k * exp(-(x - m_k)**2 * s_k / 2) * (1 + erf(h_k * (x - m_k) / (s_k * sqrt(2))))

with amplitude ``a``, mean ``m``, stddev ``s`` and shape ``h``. The
stddev multiplies the squared distance in the exponent; it is not the
textbook ``1 / s**2``. The plain variant is the same curve with the shape
pinned to zero.

Parameter vectors are flat: ``[a0, m0, s0, h0, a1, ...]`` for the skewed
model and ``[a0, m0, s0, a1, ...]`` for the plain one.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Generic

import numpy as np
from numpy.typing import NDArray
from scipy.special import erf

from zpeaks._types import P, GaussianParameters, Region, SkewGaussianParameters

SQRT2 = math.sqrt(2.0)
_TWO_OVER_SQRT_PI = 2.0 / math.sqrt(math.pi)

SQRT_2_OVER_PI = math.sqrt(2.0 / math.pi)
SQRT_2_OVER_PI_CUBED = SQRT_2_OVER_PI**3
FOUR_MINUS_PI_OVER_2 = (4.0 - math.pi) / 2.0
NEG_2_PI = -2.0 * math.pi

CurveFunction = Callable[[NDArray[np.float64], NDArray[np.float64]], NDArray[np.float64]]


def _split(x: NDArray[np.float64], params: NDArray[np.float64], arity: int) -> tuple[NDArray[np.float64], ...]:
    """Distances ``x - mean`` as an ``(n, k)`` grid plus per-component columns."""
    p = np.asarray(params, dtype=np.float64).reshape(-1, arity)
    d = np.asarray(x, dtype=np.float64)[:, None] - p[:, 1]
    return (d, *p.T)


def skew_curve(x: NDArray[np.float64], params: NDArray[np.float64]) -> NDArray[np.float64]:
    """Sum of skewed Gaussians evaluated at *x*."""
    d, a, _, s, h = _split(x, params, SkewGaussianParameters.arity)
    g = np.exp(-d * d * s / 2.0)
    e = 1.0 + erf(h * d / (s * SQRT2))
    return np.sum(a * a / s * g * e, axis=1)


def skew_jacobian(x: NDArray[np.float64], params: NDArray[np.float64]) -> NDArray[np.float64]:
    """Partial derivatives of :func:`skew_curve`, shape ``(len(x), len(params))``."""
    d, a, _, s, h = _split(x, params, SkewGaussianParameters.arity)
    a2 = a * a
    z = h * d / (s * SQRT2)
    ge = np.exp(-d * d * s / 2.0) * (1.0 + erf(z))
    # Gaussian factor times the derivative of the erf factor.
    gk = _TWO_OVER_SQRT_PI * np.exp(-d * d * s / 2.0 - z * z)

    jac = np.empty((d.shape[0], d.shape[1] * 4), dtype=np.float64)
    jac[:, 0::4] = 2.0 * a * ge / s
    jac[:, 1::4] = a2 * (d * ge - gk * h / (s * s * SQRT2))
    jac[:, 2::4] = -a2 / (s * s) * (ge + s * d * d * ge / 2.0 + gk * z)
    jac[:, 3::4] = a2 * gk * d / (s * s * SQRT2)
    return jac


def gaussian_curve(x: NDArray[np.float64], params: NDArray[np.float64]) -> NDArray[np.float64]:
    """Sum of plain (zero-shape) Gaussians evaluated at *x*."""
    d, a, _, s = _split(x, params, GaussianParameters.arity)
    return np.sum(a * a / s * np.exp(-d * d * s / 2.0), axis=1)


def gaussian_jacobian(x: NDArray[np.float64], params: NDArray[np.float64]) -> NDArray[np.float64]:
    """Partial derivatives of :func:`gaussian_curve`."""
    d, a, _, s = _split(x, params, GaussianParameters.arity)
    a2 = a * a
    g = np.exp(-d * d * s / 2.0)

    jac = np.empty((d.shape[0], d.shape[1] * 3), dtype=np.float64)
    jac[:, 0::3] = 2.0 * a * g / s
    jac[:, 1::3] = a2 * d * g
    jac[:, 2::3] = -a2 / (s * s) * g * (1.0 + s * d * d / 2.0)
    return jac


def skew_mode(parameters: SkewGaussianParameters) -> float:
    """Approximate mode of a skewed Gaussian (peak-local coordinates)."""
    h = parameters.shape
    delta = h / math.sqrt(1.0 + h * h)
    uz = SQRT_2_OVER_PI * delta
    oz = math.sqrt(1.0 - uz * uz)
    skewness = FOUR_MINUS_PI_OVER_2 * (
        (SQRT_2_OVER_PI_CUBED * delta**3) / (1.0 - 2.0 * delta * delta / math.pi) ** 1.5
    )
    tail = 0.0 if h == 0 else math.copysign(0.5, h) * math.exp(NEG_2_PI / abs(h))
    return (uz - skewness * oz / 2.0 - tail) * parameters.stddev + parameters.mean


def skew_parameters_to_region(parameters: SkewGaussianParameters, offset: int) -> Region:
    """Report span: one stddev either side of the mode, shifted by *offset*."""
    mode = skew_mode(parameters) + offset
    half = abs(parameters.stddev)
    return Region(int(mode - half), int(mode + half))


def gaussian_parameters_to_region(parameters: GaussianParameters, offset: int) -> Region:
    mean = parameters.mean + offset
    half = abs(parameters.stddev)
    return Region(int(mean - half), int(mean + half))


@dataclass(frozen=True, slots=True)
class CurveModel(Generic[P]):
    """A parameter variant together with its curve and Jacobian."""

    parameters: type[P]
    curve: CurveFunction
    jacobian: CurveFunction
    to_region: Callable[[P, int], Region]

    @property
    def arity(self) -> int:
        return self.parameters.arity


SKEW_MODEL: CurveModel[SkewGaussianParameters] = CurveModel(
    SkewGaussianParameters, skew_curve, skew_jacobian, skew_parameters_to_region
)
GAUSSIAN_MODEL: CurveModel[GaussianParameters] = CurveModel(
    GaussianParameters, gaussian_curve, gaussian_jacobian, gaussian_parameters_to_region
)
