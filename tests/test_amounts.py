"""Tests for minor-unit amount conversion."""
from decimal import Decimal

import pytest

from services.payme_service.amounts import AmountConverter


class TestAmountConverter:
    """Conversion between sum and tiyin."""

    def test_whole_sum_to_tiyin(self) -> None:
        assert AmountConverter().to_minor_units(Decimal("50000")) == 5000000

    def test_accepts_int_float_and_str(self) -> None:
        converter = AmountConverter()
        assert converter.to_minor_units(12) == 1200
        assert converter.to_minor_units(12.5) == 1250
        assert converter.to_minor_units("12.34") == 1234

    def test_rounds_half_up_once(self) -> None:
        converter = AmountConverter()
        assert converter.to_minor_units(Decimal("12.345")) == 1235
        assert converter.to_minor_units(Decimal("12.344")) == 1234

    def test_float_noise_does_not_leak(self) -> None:
        # 0.1 + 0.2 == 0.30000000000000004
        assert AmountConverter().to_minor_units(0.1 + 0.2) == 30

    def test_tiyin_to_sum(self) -> None:
        converter = AmountConverter()
        assert converter.from_minor_units(5000000) == Decimal("50000.00")
        assert converter.from_minor_units(1) == Decimal("0.01")

    def test_back_and_forth_preserves_minor_units(self) -> None:
        converter = AmountConverter()
        for minor in (0, 1, 99, 100, 123456789):
            assert converter.to_minor_units(converter.from_minor_units(minor)) == minor

    def test_custom_scale(self) -> None:
        converter = AmountConverter(scale=1000)
        assert converter.to_minor_units(Decimal("1.5")) == 1500
        assert converter.from_minor_units(1500) == Decimal("1.500")

    @pytest.mark.parametrize("scale", [0, -100, True, 1.5])
    def test_rejects_invalid_scale(self, scale) -> None:
        with pytest.raises(ValueError):
            AmountConverter(scale=scale)
