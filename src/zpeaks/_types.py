"""Shared data types for zpeaks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Generic, TypeVar

import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True, slots=True)
class Region:
    """Half-open base-pair interval ``[start, end)``.

    Coordinates are either chromosome-absolute or peak-local; callers
    track which.
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"region end {self.end} precedes start {self.start}")

    def __len__(self) -> int:
        return self.end - self.start


@dataclass(frozen=True, slots=True)
class Background:
    """Noise-floor model of a smoothed signal.

    Attributes
    ----------
    average : float
        Mean background magnitude at a randomly sampled offset.
    stddev : float
        Population standard deviation of the sampled magnitudes.
    """

    average: float
    stddev: float

    @property
    def is_degenerate(self) -> bool:
        """True when either statistic is exactly zero (chromosome unusable)."""
        return self.average == 0.0 or self.stddev == 0.0


class PileUp:
    """Per-base read depth for one chromosome.

    The count array can be handed off exactly once with :meth:`take` or
    dropped with :meth:`release`; afterwards any access raises.
    """

    __slots__ = ("_values", "sum", "chr_length")

    def __init__(self, values: NDArray[np.integer] | list[int]) -> None:
        counts = np.asarray(values)
        if counts.ndim != 1:
            raise ValueError("pile-up must be one-dimensional")
        if counts.size and counts.min() < 0:
            raise ValueError("pile-up counts must be non-negative")
        counts = counts.astype(np.int64, copy=True)
        counts.setflags(write=False)
        self._values: NDArray[np.int64] | None = counts
        self.sum = int(counts.sum())
        self.chr_length = int(counts.size)

    @property
    def values(self) -> NDArray[np.int64]:
        if self._values is None:
            raise ValueError("pile-up has been released")
        return self._values

    @property
    def released(self) -> bool:
        return self._values is None

    def __getitem__(self, bp: int) -> int:
        return int(self.values[bp])

    def take(self) -> NDArray[np.int64]:
        """Hand over the count array, invalidating this pile-up."""
        values = self.values
        self._values = None
        return values

    def release(self) -> None:
        self._values = None


@dataclass(frozen=True, slots=True)
class GaussianParameters:
    """Plain Gaussian component.

    ``amplitude`` holds the square root of the curve scale: the fitted
    height at the mean is ``amplitude**2 / stddev``.
    """

    arity: ClassVar[int] = 3

    amplitude: float
    mean: float
    stddev: float

    @classmethod
    def initial(cls, region: Region) -> GaussianParameters:
        """Guess from a candidate region; amplitude is solved later."""
        return cls(
            amplitude=0.0,
            mean=(region.start + region.end) / 2.0,
            stddev=(region.end - region.start) / 2.0,
        )

    @classmethod
    def from_array(cls, values: NDArray[np.float64]) -> GaussianParameters:
        return cls(amplitude=float(values[0]), mean=float(values[1]), stddev=float(values[2]))

    def as_array(self) -> NDArray[np.float64]:
        return np.array([self.amplitude, self.mean, self.stddev], dtype=np.float64)


@dataclass(frozen=True, slots=True)
class SkewGaussianParameters:
    """Skewed Gaussian component.

    Attributes
    ----------
    amplitude : float
        Square root of the curve scale.
    mean : float
        Location of the curve (base pairs).
    stddev : float
        Width parameter.
    shape : float
        Skewness parameter; 0 is symmetric.
    """

    arity: ClassVar[int] = 4

    amplitude: float
    mean: float
    stddev: float
    shape: float = 0.0

    @classmethod
    def initial(cls, region: Region) -> SkewGaussianParameters:
        return cls(
            amplitude=0.0,
            mean=(region.start + region.end) / 2.0,
            stddev=(region.end - region.start) / 2.0,
            shape=0.0,
        )

    @classmethod
    def from_array(cls, values: NDArray[np.float64]) -> SkewGaussianParameters:
        return cls(
            amplitude=float(values[0]),
            mean=float(values[1]),
            stddev=float(values[2]),
            shape=float(values[3]),
        )

    def as_array(self) -> NDArray[np.float64]:
        return np.array([self.amplitude, self.mean, self.stddev, self.shape], dtype=np.float64)


# Both variants expose amplitude, mean, stddev, a fixed arity and array conversion.
P = TypeVar("P", GaussianParameters, SkewGaussianParameters)


@dataclass(frozen=True, slots=True)
class CandidateGaussian(Generic[P]):
    """Initial guess for one sub-peak, paired with the region it came from."""

    region: Region
    parameters: P


@dataclass(frozen=True, slots=True)
class OptimizeResult(Generic[P]):
    """Outcome of a nonlinear least-squares fit.

    Attributes
    ----------
    parameters : list
        Fitted components, in the order they were supplied.
    rms : float
        Root-mean-square residual of the final model.
    iterations : int
        Solver iterations consumed; equal to the cap on non-convergence.
    converged : bool
        False when the evaluation budget ran out.
    """

    parameters: list[P] = field(default_factory=list)
    rms: float = 0.0
    iterations: int = 0
    converged: bool = True


@dataclass(frozen=True, slots=True)
class SubPeak(Generic[P]):
    """A fitted sub-peak reported in chromosome coordinates."""

    region: Region
    parameters: P
    error: float
