"""Tests for zpeaks.models (curves, Jacobians, mode)."""

from __future__ import annotations

import math
from typing import Callable

import numpy as np
import numpy.typing as npt
import pytest
from scipy.special import erf

from zpeaks._types import GaussianParameters, Region, SkewGaussianParameters
from zpeaks.models import (
    GAUSSIAN_MODEL,
    SKEW_MODEL,
    gaussian_curve,
    gaussian_jacobian,
    gaussian_parameters_to_region,
    skew_curve,
    skew_jacobian,
    skew_mode,
    skew_parameters_to_region,
)

X = np.arange(50, dtype=np.float64)


def _numeric_jacobian(
    curve: Callable[[npt.NDArray[np.float64], npt.NDArray[np.float64]], npt.NDArray[np.float64]],
    params: npt.NDArray[np.float64],
) -> npt.NDArray[np.float64]:
    """Central finite differences, one column per parameter."""
    jac = np.empty((len(X), len(params)))
    for j in range(len(params)):
        step = 1e-6 * max(1.0, abs(params[j]))
        hi, lo = params.copy(), params.copy()
        hi[j] += step
        lo[j] -= step
        jac[:, j] = (curve(X, hi) - curve(X, lo)) / (2 * step)
    return jac


def test_skew_curve_formula() -> None:
    """Curve is a^2/s * exp(-(x-m)^2 * s / 2) * (1 + erf(h (x-m) / (s sqrt 2)))."""
    a, m, s, h = 3.0, 20.3, 0.4, 1.5
    d = X - m
    expected = a * a / s * np.exp(-d * d * s / 2) * (1 + erf(h * d / (s * math.sqrt(2))))
    np.testing.assert_allclose(skew_curve(X, np.array([a, m, s, h])), expected, rtol=1e-12)


def test_zero_shape_matches_plain() -> None:
    skew = skew_curve(X, np.array([3.0, 20.0, 0.4, 0.0, 2.0, 35.0, 0.2, 0.0]))
    plain = gaussian_curve(X, np.array([3.0, 20.0, 0.4, 2.0, 35.0, 0.2]))
    np.testing.assert_allclose(skew, plain, rtol=1e-12)


def test_components_add() -> None:
    first = np.array([3.0, 20.0, 0.4, 1.0])
    second = np.array([2.0, 35.0, 0.2, -0.5])
    np.testing.assert_allclose(
        skew_curve(X, np.concatenate([first, second])),
        skew_curve(X, first) + skew_curve(X, second),
        rtol=1e-12,
    )


def test_skew_jacobian_matches_finite_differences() -> None:
    params = np.array([3.0, 20.3, 0.4, 1.5, 2.0, 30.7, 0.3, -0.8])
    analytic = skew_jacobian(X, params)
    assert analytic.shape == (50, 8)
    np.testing.assert_allclose(analytic, _numeric_jacobian(skew_curve, params), rtol=1e-5, atol=1e-6)


def test_gaussian_jacobian_matches_finite_differences() -> None:
    params = np.array([3.0, 20.3, 0.4, 2.0, 30.7, 0.3])
    analytic = gaussian_jacobian(X, params)
    assert analytic.shape == (50, 6)
    np.testing.assert_allclose(analytic, _numeric_jacobian(gaussian_curve, params), rtol=1e-5, atol=1e-6)


def test_skew_mode_symmetric_curve() -> None:
    assert skew_mode(SkewGaussianParameters(2.0, 10.0, 3.0, 0.0)) == 10.0


def test_skew_mode_direction() -> None:
    """Positive shape moves the mode right of the mean, negative left, symmetrically."""
    right = skew_mode(SkewGaussianParameters(2.0, 10.0, 3.0, 1.0)) - 10.0
    left = skew_mode(SkewGaussianParameters(2.0, 10.0, 3.0, -1.0)) - 10.0
    assert right > 0
    assert left == pytest.approx(-right)


def test_skew_region_uses_offset() -> None:
    region = skew_parameters_to_region(SkewGaussianParameters(2.0, 10.0, 2.0, 0.0), 100)
    assert region == Region(108, 112)


def test_gaussian_region_uses_offset() -> None:
    region = gaussian_parameters_to_region(GaussianParameters(2.0, 10.5, 2.0), 100)
    assert region == Region(108, 112)


def test_model_arity() -> None:
    assert SKEW_MODEL.arity == 4
    assert GAUSSIAN_MODEL.arity == 3
    assert SKEW_MODEL.parameters is SkewGaussianParameters
