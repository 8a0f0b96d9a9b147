"""Kernel smoothing of raw pile-up into a dense signal (F-Seq style)."""

from __future__ import annotations

import logging
import os
from collections.abc import MutableMapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from zpeaks._types import Background, PileUp, Region
from zpeaks.background import background
from zpeaks.kernel import lookup_table, window_size

logger = logging.getLogger(__name__)

# Input positions handed to one worker at a time.
_CHUNK_SIZE = 1 << 20


@dataclass(frozen=True, slots=True)
class Signal:
    """Smoothed signal for one chromosome.

    Attributes
    ----------
    values : NDArray[np.float32]
        Read-only smoothed value per base pair.
    background : Background
        Noise-floor model for this chromosome.
    chr_length : int
        Chromosome length in base pairs.
    """

    values: NDArray[np.float32]
    background: Background
    chr_length: int

    def __getitem__(self, bp: int) -> float:
        return float(self.values[bp])

    def __len__(self) -> int:
        return self.chr_length

    def slice(self, region: Region) -> NDArray[np.float64]:
        """Values covering *region* (chromosome coordinates) as float64."""
        if region.start < 0 or region.end > self.chr_length:
            raise ValueError(f"{region} outside chromosome of length {self.chr_length}")
        return self.values[region.start : region.end].astype(np.float64)


def _scatter_chunk(
    counts: NDArray[np.integer],
    lo: int,
    hi: int,
    table: NDArray[np.float64],
) -> tuple[int, NDArray[np.float64]] | None:
    """Scatter every non-zero count in ``[lo, hi)`` into a private buffer.

    Returns ``(offset, partial)`` where ``partial[i]`` belongs at output
    index ``offset + i``, or None when the chunk holds no reads.
    """
    chr_length = len(counts)
    width = len(table)
    positions = lo + np.flatnonzero(counts[lo:hi])
    if positions.size == 0:
        return None

    offset = max(int(positions[0]) - width + 1, 0)
    stop = min(int(positions[-1]) + width, chr_length)
    partial = np.zeros(stop - offset, dtype=np.float64)
    weights = counts[positions].astype(np.float64)

    np.add.at(partial, positions - offset, weights * table[0])
    for d in range(1, width):
        right = positions + d
        inside = right < chr_length
        np.add.at(partial, right[inside] - offset, weights[inside] * table[d])
        left = positions - d
        inside = left >= 0
        np.add.at(partial, left[inside] - offset, weights[inside] * table[d])
    return offset, partial


def smooth(
    counts: NDArray[np.integer],
    table: NDArray[np.floating],
    *,
    on_range: Region | None = None,
    workers: int | None = None,
) -> NDArray[np.float64]:
    """Scatter-add convolution of *counts* with a one-sided kernel *table*.

    Every non-zero count ``v`` at position ``i`` in *on_range* adds
    ``v * table[d]`` to positions ``i - d`` and ``i + d`` that fall inside
    the chromosome. Input positions are split into chunks that workers
    accumulate into private buffers; buffers are summed afterwards, so the
    result does not depend on processing order.

    Parameters
    ----------
    counts:
        Per-base pile-up.
    table:
        One-sided kernel lookup table.
    on_range:
        Restrict which input positions contribute. Output always spans the
        whole chromosome.
    workers:
        Thread count. Defaults to ``os.cpu_count()``.

    Returns
    -------
    NDArray[np.float64]
        Smoothed values, same length as *counts*.
    """
    counts = np.asarray(counts)
    table = np.asarray(table, dtype=np.float64)
    chr_length = len(counts)
    start, end = (0, chr_length) if on_range is None else (on_range.start, on_range.end)
    if start < 0 or end > chr_length:
        raise ValueError(f"range [{start}, {end}) outside chromosome of length {chr_length}")

    out = np.zeros(chr_length, dtype=np.float64)
    bounds = [(lo, min(lo + _CHUNK_SIZE, end)) for lo in range(start, end, _CHUNK_SIZE)]
    if not bounds:
        return out

    workers = workers or os.cpu_count() or 1
    if workers == 1 or len(bounds) == 1:
        partials = [_scatter_chunk(counts, lo, hi, table) for lo, hi in bounds]
    else:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            partials = list(executor.map(lambda b: _scatter_chunk(counts, b[0], b[1], table), bounds))

    for part in partials:
        if part is None:
            continue
        offset, partial = part
        out[offset : offset + len(partial)] += partial
    return out


def pdf(
    pileup: PileUp,
    bandwidth: float,
    *,
    normalize: bool = False,
    on_range: Region | None = None,
    rng: np.random.Generator | None = None,
    workers: int | None = None,
) -> Signal:
    """Smooth one chromosome's pile-up and attach its background model.

    Parameters
    ----------
    pileup:
        Raw per-base read depth. Left untouched.
    bandwidth:
        Kernel standard deviation in base pairs.
    normalize:
        Produce a probability density rather than an intensity.
    on_range:
        Restrict which input positions contribute.
    rng:
        Random source for background sampling.
    workers:
        Thread count for the scatter-add.

    Returns
    -------
    Signal
        float32 values with the attached :class:`Background`.
    """
    size = window_size(bandwidth)
    table = lookup_table(bandwidth, normalize=normalize, total=pileup.sum)
    smoothed = smooth(pileup.values, table, on_range=on_range, workers=workers)
    bg = background(table, pileup.sum, size, pileup.chr_length, rng=rng)

    values = smoothed.astype(np.float32)
    values.setflags(write=False)
    return Signal(values=values, background=bg, chr_length=pileup.chr_length)


def smooth_pileups(
    pileups: MutableMapping[str, PileUp],
    bandwidth: float,
    *,
    normalize: bool = False,
    rng: np.random.Generator | None = None,
    workers: int | None = None,
) -> dict[str, Signal]:
    """Smooth every chromosome in *pileups*, consuming the mapping.

    Each entry is removed from *pileups* and released as soon as its
    signal exists, so at most one raw pile-up and one signal for the
    current chromosome are alive together. Chromosomes whose background is
    degenerate are logged and left out of the result.
    """
    logger.info("Performing smoothing of raw pile-up data for %d chromosomes...", len(pileups))
    signals: dict[str, Signal] = {}
    for chrom in list(pileups):
        pileup = pileups.pop(chrom)
        logger.info("Calculating PDF for chromosome %s...", chrom)
        signal = pdf(pileup, bandwidth, normalize=normalize, rng=rng, workers=workers)
        pileup.release()
        logger.info("Chromosome %s PDF completed with background %s", chrom, signal.background)

        if signal.background.is_degenerate:
            logger.warning("One or more background parameters for chromosome %s was zero, skipping", chrom)
            continue
        signals[chrom] = signal
    logger.info("Smoothing complete")
    return signals
