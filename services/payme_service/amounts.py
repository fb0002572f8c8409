"""Conversion between major currency units and Payme's minor units."""
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[Decimal, int, float, str]


class AmountConverter:
    """
    Single source of truth for amount rounding.

    Payme exchanges amounts as integers in the currency's minor unit
    (tiyin for UZS, 1 UZS = 100 tiyin). Orders store major units.
    Rounding to a whole minor unit happens exactly once, half-up, in
    ``to_minor_units``; ``from_minor_units`` is exact.
    """

    def __init__(self, scale: int = 100):
        if isinstance(scale, bool) or not isinstance(scale, int) or scale <= 0:
            raise ValueError(f"Minor unit scale must be a positive integer, got {scale!r}")
        self.scale = scale
        self._exponent = Decimal(1) / Decimal(scale)

    def to_minor_units(self, amount: Number) -> int:
        """Convert a major-unit amount to an integer count of minor units."""
        # str() keeps floats from dragging their binary expansion along
        value = Decimal(str(amount)) * self.scale
        return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))

    def from_minor_units(self, minor: int) -> Decimal:
        """Convert an integer count of minor units to a major-unit Decimal."""
        return (Decimal(int(minor)) / self.scale).quantize(self._exponent, rounding=ROUND_HALF_UP)
