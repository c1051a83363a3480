"""Compensated summation for long-running energy totals."""

from __future__ import annotations

import math


class EnergyAccumulator:
    """Running total of non-negative increments using Neumaier summation.

    A plain float total loses the low-order bits of small increments once it
    grows large (hours of millijoule ticks). The compensation term carries
    those bits so the total tracks ``math.fsum`` of all increments.

    The reported value never decreases.
    """

    __slots__ = ("_sum", "_compensation", "_value")

    def __init__(self) -> None:
        self._sum = 0.0
        self._compensation = 0.0
        self._value = 0.0

    @property
    def value(self) -> float:
        """Current total."""
        return self._value

    def add(self, amount: float) -> float:
        """Add a non-negative increment and return the new total.

        Raises:
            ValueError: If amount is negative, NaN, or infinite.
        """
        if not math.isfinite(amount) or amount < 0:
            raise ValueError(f"energy increment must be finite and >= 0, got {amount}")

        total = self._sum + amount
        if abs(self._sum) >= abs(amount):
            self._compensation += (self._sum - total) + amount
        else:
            self._compensation += (amount - total) + self._sum
        self._sum = total

        self._value = max(self._value, self._sum + self._compensation)
        return self._value
