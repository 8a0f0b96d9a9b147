"""Discretised one-sided Gaussian kernel used for pile-up smoothing."""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray

SQRT_2PI = math.sqrt(2.0 * math.pi)

# Half-width, in units of bandwidth, past which the Gaussian density
# underflows to zero in double precision.
_UNDERFLOW_RADIUS = math.sqrt(-2.0 * math.log(float(np.finfo(np.float64).smallest_subnormal) * SQRT_2PI))


def gaussian_distribution(
    x: NDArray[np.floating],
    amplitude: float,
    mean: float,
    stddev: float,
) -> NDArray[np.float64]:
    """Evaluate ``amplitude * exp(-(x - mean)**2 / (2 * stddev**2))`` at *x*."""
    x = np.asarray(x, dtype=np.float64)
    return amplitude * np.exp(-((x - mean) ** 2) / (2.0 * stddev * stddev))


def window_size(bandwidth: float) -> int:
    """Number of kernel entries kept for a Gaussian of the given *bandwidth*.

    Parameters
    ----------
    bandwidth:
        Gaussian standard deviation in base pairs.

    Returns
    -------
    int
        ``floor(sqrt(-2 ln(min_subnormal * sqrt(2 pi))) * bandwidth)``.
    """
    if not bandwidth > 0:
        raise ValueError(f"bandwidth must be positive, got {bandwidth}")
    return int(_UNDERFLOW_RADIUS * bandwidth)


def lookup_table(bandwidth: float, *, normalize: bool = False, total: int = 0) -> NDArray[np.float64]:
    """Build the one-sided kernel table for *bandwidth*.

    Index 0 is the kernel centre and index ``i`` the weight at distance
    ``i``. The kernel is symmetric, so only the non-negative half is kept.

    Parameters
    ----------
    bandwidth:
        Gaussian standard deviation in base pairs.
    normalize:
        Scale by ``1 / (bandwidth * sqrt(2 pi))`` and divide by *total* so
        the smoothed signal is a probability density instead of an
        intensity.
    total:
        Sum of the pile-up being smoothed. Ignored when zero.

    Returns
    -------
    NDArray[np.float64]
        ``window_size(bandwidth)`` entries, or ``[1.0]`` when the window
        is empty.
    """
    size = window_size(bandwidth)
    if size <= 0:
        table = np.ones(1, dtype=np.float64)
    else:
        a = 1.0 / bandwidth / SQRT_2PI if normalize else 1.0
        table = gaussian_distribution(np.arange(size), a, 0.0, bandwidth)
    if normalize and total:
        table = table / total
    return table
