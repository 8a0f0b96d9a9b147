"""Tests for zpeaks.background."""

from __future__ import annotations

import numpy as np
import pytest

from zpeaks.background import BACKGROUND_LIMIT, background
from zpeaks.kernel import lookup_table, window_size


def test_seeded_is_reproducible() -> None:
    """The same seed gives the same background."""
    table = lookup_table(2.0)
    first = background(table, 11, window_size(2.0), 10, rng=np.random.default_rng(7))
    second = background(table, 11, window_size(2.0), 10, rng=np.random.default_rng(7))
    assert first == second


def test_dense_regime_draws_floor_average_n() -> None:
    """With average_n > 1 each sample sums floor(average_n) table lookups."""
    table = np.ones(10)
    # average_n = 105 * 10 / 100 = 10.5 -> 10 reads per sample.
    bg = background(table, 105, 10, 100, rng=np.random.default_rng(0))
    assert bg.average == pytest.approx(10.0)
    assert bg.stddev == 0.0
    assert bg.is_degenerate


def test_sparse_regime_divides_by_limit() -> None:
    """Skipped repeats still count in the stddev divisor.

    Samples are 0 or 2 with equal odds, so the true spread is 1. Only about
    half of the repeats produce a sample, which shrinks the reported
    stddev to about sqrt(0.5).
    """
    table = np.array([0.0, 2.0])
    # average_n = 1 * 4 / 8 = 0.5, offsets drawn from [0, 2).
    bg = background(table, 1, 4, 8, rng=np.random.default_rng(3))
    assert bg.average == pytest.approx(1.0, abs=0.15)
    assert 0.6 < bg.stddev < 0.8


def test_no_reads_is_degenerate() -> None:
    """An empty pile-up collects no samples."""
    bg = background(lookup_table(2.0), 0, window_size(2.0), 1000, rng=np.random.default_rng(1))
    assert bg.average == 0.0
    assert bg.stddev == 0.0
    assert bg.is_degenerate


def test_degenerate_table_samples_centre() -> None:
    """A one-entry table still samples without an empty offset range."""
    bg = background(np.ones(1), 500, 0, 100, rng=np.random.default_rng(1))
    assert bg.is_degenerate


def test_dense_pileup_is_finite(rng: np.random.Generator) -> None:
    """Background for a small non-empty pile-up is finite and non-negative."""
    bg = background(lookup_table(2.0), 11, window_size(2.0), 10, rng=rng)
    assert np.isfinite(bg.average) and bg.average >= 0
    assert np.isfinite(bg.stddev) and bg.stddev >= 0
    assert not bg.is_degenerate


def test_rejects_empty_chromosome() -> None:
    with pytest.raises(ValueError):
        background(np.ones(3), 1, 3, 0)


def test_limit_constant() -> None:
    assert BACKGROUND_LIMIT == 1000
