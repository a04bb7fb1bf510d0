"""Tests for pm_common.micro_units — fixed-point conversions shared with the contract."""

from decimal import Decimal

from src.pm_common.micro_units import (
    micro_units_to_display,
    octas_to_display,
    to_micro_units,
)


class TestToMicroUnits:
    def test_exact_six_decimals(self) -> None:
        assert to_micro_units(Decimal("8.123456")) == 8123456

    def test_truncates_extra_precision(self) -> None:
        assert to_micro_units(Decimal("1.0000005")) == 1000000
        assert to_micro_units(Decimal("8.1234569")) == 8123456

    def test_accepts_str_and_int(self) -> None:
        assert to_micro_units("8.5") == 8500000
        assert to_micro_units(3) == 3000000

    def test_no_float_drift(self) -> None:
        # 0.1 + 0.2 style errors must not leak in: Decimal math only
        assert to_micro_units(Decimal("0.3")) == 300000

    def test_below_one_micro_unit_is_zero(self) -> None:
        assert to_micro_units(Decimal("0.0000009")) == 0


class TestDisplay:
    def test_price_display(self) -> None:
        assert micro_units_to_display(8123456) == "$8.123456"
        assert micro_units_to_display(0) == "$0.000000"

    def test_negative_price_display(self) -> None:
        assert micro_units_to_display(-1500000) == "-$1.500000"

    def test_large_price_has_thousands_separator(self) -> None:
        assert micro_units_to_display(65_432_100000) == "$65,432.100000"

    def test_octas_display(self) -> None:
        assert octas_to_display(200000000) == "2.00000000 APT"
        assert octas_to_display(1) == "0.00000001 APT"
