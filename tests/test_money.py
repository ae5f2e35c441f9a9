"""Tests for currency conversion."""

from decimal import Decimal

import pytest

from splitledger.exceptions import RateUnavailableError
from splitledger.money import (
    convert,
    effective_rate,
    resolve_rate,
    round_display,
    round_rate,
    to_decimal,
)


class TestConvert:
    """Conversion into the settlement currency."""

    def test_rate_with_fee(self):
        """100 at 7.8 with a 2% fee."""
        assert effective_rate(Decimal("7.8"), Decimal("2")) == Decimal("7.956")
        assert convert(Decimal("100"), Decimal("7.8"), Decimal("2")) == Decimal("795.6")

    def test_no_fee(self):
        assert convert(Decimal("50"), Decimal("0.052"), Decimal("0")) == Decimal("2.6")

    def test_no_rounding_applied(self):
        """Results keep full precision; rounding is for display only."""
        result = convert(Decimal("1"), Decimal("0.123456"), Decimal("1.5"))
        assert result == Decimal("0.12530784")

    def test_fee_on_settlement_currency(self):
        """A fee still applies when the rate is pinned to 1."""
        assert convert(Decimal("200"), Decimal("1"), Decimal("3")) == Decimal("206")


class TestResolveRate:
    """The settlement-currency boundary rule."""

    def test_settlement_currency_is_forced_to_one(self):
        assert resolve_rate("HKD", Decimal("7.8"), "HKD") == Decimal("1")

    def test_settlement_currency_match_ignores_case(self):
        assert resolve_rate("hkd", None, "HKD") == Decimal("1")

    def test_foreign_currency_keeps_rate(self):
        assert resolve_rate("USD", Decimal("7.8"), "HKD") == Decimal("7.8")

    def test_foreign_currency_without_rate(self):
        """Never silently defaults to 1 for a foreign currency."""
        with pytest.raises(RateUnavailableError, match="manually"):
            resolve_rate("USD", None, "HKD")

    def test_foreign_currency_with_zero_rate(self):
        with pytest.raises(RateUnavailableError):
            resolve_rate("EUR", Decimal("0"), "HKD")


class TestRounding:
    """Display helpers."""

    def test_round_display_half_up(self):
        assert round_display(Decimal("33.335")) == Decimal("33.34")
        assert round_display(Decimal("-33.335")) == Decimal("-33.34")

    def test_round_rate_six_places(self):
        assert round_rate(Decimal("7.79654321")) == Decimal("7.796543")

    def test_to_decimal_from_float(self):
        """Floats convert through their shortest repr."""
        assert to_decimal(7.8) == Decimal("7.8")
        assert to_decimal("2.5") == Decimal("2.5")
        assert to_decimal(3) == Decimal("3")
