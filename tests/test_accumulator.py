"""Tests for compensated energy summation."""

import math

import pytest

from procwatt.core.accumulator import EnergyAccumulator


def test_accumulator_matches_fsum_over_many_small_increments() -> None:
    """Tiny increments on a large total are not lost."""
    acc = EnergyAccumulator()
    increments = [1e12] + [0.001] * 100_000

    for amount in increments:
        acc.add(amount)

    assert acc.value == pytest.approx(math.fsum(increments), rel=0, abs=1e-3)
    assert acc.value > 1e12


def test_accumulator_never_decreases() -> None:
    acc = EnergyAccumulator()
    previous = 0.0
    for amount in [0.1, 0.2, 0.0, 1e-9, 3.5, 0.0]:
        value = acc.add(amount)
        assert value >= previous
        previous = value


@pytest.mark.parametrize("amount", [-1.0, math.nan, math.inf])
def test_accumulator_rejects_invalid_increments(amount) -> None:
    acc = EnergyAccumulator()
    acc.add(5.0)

    with pytest.raises(ValueError):
        acc.add(amount)

    assert acc.value == 5.0
