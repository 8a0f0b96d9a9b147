"""Sub-peak candidate detection and amplitude initialisation."""

from __future__ import annotations

import dataclasses
from typing import Callable, Sequence

import numpy as np
from numpy.typing import NDArray
from scipy.ndimage import gaussian_filter1d

from zpeaks._types import P, CandidateGaussian, Region
from zpeaks.kernel import gaussian_distribution

SCALE_SPACE_BANDWIDTH = 1.0


def scale_space_smooth(values: NDArray[np.floating], scale: float) -> NDArray[np.float64]:
    """Second-derivative response of *values* blurred by a Gaussian of width *scale*.

    Negative stretches mark the concave core of each bump; the sign
    changes sit at its inflection points.
    """
    return gaussian_filter1d(np.asarray(values, dtype=np.float64), sigma=scale, order=2, mode="nearest")


def find_candidates(values: Sequence[float] | NDArray[np.floating]) -> list[Region]:
    """Locate sub-peak spans inside one peak via scale-space zero crossings.

    Parameters
    ----------
    values:
        Signal values across the peak.

    Returns
    -------
    list[Region]
        Candidate spans in peak-local coordinates, ascending.
    """
    data = np.asarray(values, dtype=np.float64).ravel()
    if data.size == 0:
        raise ValueError("cannot find candidates in an empty peak")

    blurred = scale_space_smooth(data - data.min(), SCALE_SPACE_BANDWIDTH)
    non_negative = blurred >= 0
    crossings = (np.flatnonzero(non_negative[1:] != non_negative[:-1]) + 1).tolist()

    # A peak cut above baseline on one side leaves one extra crossing next
    # to that end.
    if len(crossings) % 2 == 1:
        first, last = data[0], data[-1]
        if first > last:
            crossings = crossings[1:]
        elif last > first:
            crossings = crossings[:-1]
    if len(crossings) % 2 == 1:
        raise ValueError(f"unpaired zero crossing in peak of length {data.size}")

    return [Region(start, end) for start, end in zip(crossings[0::2], crossings[1::2])]


def candidate_gaussians(
    values: Sequence[float] | NDArray[np.floating],
    regions: Sequence[Region],
    init_parameters: Callable[[Region], P],
) -> list[CandidateGaussian[P]]:
    """Initial parameter guesses for each candidate region.

    Means and widths come straight from the region bounds. Amplitudes are
    the least-squares solution of ``M r = d`` where
    ``M[i, j] = sum_x g_i(x) g_j(x)`` and ``d[j] = sum_x g_j(x) y(x)`` over
    unit-height Gaussians ``g``; each amplitude is stored as
    ``sqrt(|r_j| * stddev_j)``.

    Raises
    ------
    ValueError
        If *values* is empty or a region has zero length.
    numpy.linalg.LinAlgError
        If the system is singular (duplicate or degenerate regions).
    """
    y = np.asarray(values, dtype=np.float64).ravel()
    if y.size == 0:
        raise ValueError("cannot initialise candidates for an empty peak")
    for region in regions:
        if len(region) == 0:
            raise ValueError(f"zero-length candidate region {region}")
    if not regions:
        return []

    guesses = [init_parameters(region) for region in regions]
    x = np.arange(y.size, dtype=np.float64)
    curves = np.array([gaussian_distribution(x, 1.0, g.mean, g.stddev) for g in guesses])

    m = curves @ curves.T
    d = curves @ y
    r = np.linalg.solve(m, d)

    return [
        CandidateGaussian(
            region=region,
            parameters=dataclasses.replace(guess, amplitude=float(np.sqrt(abs(r_j) * guess.stddev))),
        )
        for region, guess, r_j in zip(regions, guesses, r)
    ]
