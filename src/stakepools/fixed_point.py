"""
stakepools/fixed_point.py

Integer fixed-point type for the reward-per-share accumulator.

A FixedPoint holds ``raw = value * SCALE`` as a Python int, with
SCALE = 10**12. All arithmetic floors toward zero, never uses floats.

Precision loss bounds:
    - from_ratio(n, d) loses strictly less than one raw unit, i.e. less
      than 1 / SCALE reward units per staked unit. Summed over a pool,
      each accrual step leaves at most ``total_staked / SCALE`` reward
      units undistributed.
    - mul_floor(amount) loses strictly less than one reward unit per call.
"""

from dataclasses import dataclass

from .config import SCALE


@dataclass(frozen=True, order=True)
class FixedPoint:
    """Non-negative fixed-point number scaled by SCALE."""
    raw: int = 0

    @classmethod
    def zero(cls) -> "FixedPoint":
        return cls(0)

    @classmethod
    def from_ratio(cls, numerator: int, denominator: int) -> "FixedPoint":
        """
        Build ``numerator / denominator`` as a fixed-point value.

        Raises:
            ZeroDivisionError: If denominator is zero
        """
        return cls(numerator * SCALE // denominator)

    def __add__(self, other: "FixedPoint") -> "FixedPoint":
        if not isinstance(other, FixedPoint):
            return NotImplemented
        return FixedPoint(self.raw + other.raw)

    def mul_floor(self, amount: int) -> int:
        """Return ``floor(amount * self)`` as an integer amount."""
        return amount * self.raw // SCALE

    def __int__(self) -> int:
        return self.raw

    def __str__(self) -> str:
        whole, frac = divmod(self.raw, SCALE)
        return f"{whole}.{frac:012d}"
