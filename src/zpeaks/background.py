"""Monte-Carlo background model for smoothed pile-up signal."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from zpeaks._types import Background

BACKGROUND_LIMIT = 1000


def background(
    table: NDArray[np.floating],
    total: int,
    window_size: int,
    chr_length: int,
    *,
    rng: np.random.Generator | None = None,
) -> Background:
    """Estimate the noise floor of a smoothed chromosome by resampling.

    The expected number of reads landing in one kernel window is
    ``average_n = total * window_size / chr_length``. Each of
    :data:`BACKGROUND_LIMIT` repeats places reads uniformly in the
    half-window and records the summed kernel weight at the centre:

    * ``average_n > 1``: ``floor(average_n)`` reads per repeat.
    * otherwise: one read with probability ``average_n``; repeats that
      draw no read contribute no sample.

    The standard deviation always divides by :data:`BACKGROUND_LIMIT`,
    including when fewer samples were collected.

    Parameters
    ----------
    table:
        One-sided kernel lookup table.
    total:
        Sum of the pile-up.
    window_size:
        Kernel half-width the table was built for.
    chr_length:
        Chromosome length in base pairs.
    rng:
        Random source. A fresh unseeded generator when omitted.

    Returns
    -------
    Background
        ``Background(0.0, 0.0)`` when no sample was collected.
    """
    if chr_length <= 0:
        raise ValueError(f"chromosome length must be positive, got {chr_length}")
    if rng is None:
        rng = np.random.default_rng()
    table = np.asarray(table, dtype=np.float64)

    average_n = total * window_size / chr_length
    high = max(window_size // 2, 1)

    if average_n > 1.0:
        offsets = rng.integers(0, high, size=(BACKGROUND_LIMIT, int(average_n)))
        samples = table[offsets].sum(axis=1)
    else:
        hits = rng.random(BACKGROUND_LIMIT) <= average_n
        offsets = rng.integers(0, high, size=int(hits.sum()))
        samples = table[offsets]

    if samples.size == 0:
        return Background(average=0.0, stddev=0.0)

    average = float(samples.mean())
    stddev = float(np.sqrt(np.sum((samples - average) ** 2) / BACKGROUND_LIMIT))
    return Background(average=average, stddev=stddev)
