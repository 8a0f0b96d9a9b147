"""Shared fixtures for zpeaks tests."""

from __future__ import annotations

import math

import numpy as np
import numpy.typing as npt
import pytest

from zpeaks.models import skew_curve

# Two well-separated skewed bumps: (amplitude, mean, stddev, shape).
TWO_BUMP_PARAMS = (
    (10.0, 20.0, 5.0, 0.0),
    (math.sqrt(80.0), 60.0, 4.0, 1.0),
)


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(42)


@pytest.fixture
def two_bump_values() -> npt.NDArray[np.float64]:
    """Two skewed Gaussians summed into one length-100 peak."""
    x = np.arange(100, dtype=np.float64)
    return skew_curve(x, np.array(TWO_BUMP_PARAMS, dtype=np.float64).ravel())
