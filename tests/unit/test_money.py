"""
Unit tests for the Money value object.

Verifies:
- Exact arithmetic with no implicit rounding
- Explicit rounding modes at the presentation boundary
- Float constructor prohibition
- Currency mixing rejected
"""

from decimal import ROUND_DOWN, ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal

import pytest

from revsplit_kernel.domain.values import Currency, Money, Percentage


class TestMoneyConstruction:
    """Tests for building Money values."""

    def test_from_string(self):
        """String amounts are converted exactly."""
        money = Money.of("100.50", "USD")
        assert money.amount == Decimal("100.50")
        assert money.currency == Currency("USD")

    def test_from_int(self):
        money = Money.of(100, "usd")
        assert money.amount == Decimal("100")
        assert money.currency.code == "USD"

    def test_float_rejected(self):
        """Binary floats never become money."""
        with pytest.raises(TypeError):
            Money.of(0.1, "USD")

    def test_bool_rejected(self):
        with pytest.raises(TypeError):
            Money.of(True, "USD")

    def test_garbage_rejected(self):
        with pytest.raises(ValueError):
            Money.of("ten dollars", "USD")

    def test_non_finite_rejected(self):
        with pytest.raises(ValueError):
            Money.of("NaN", "USD")
        with pytest.raises(ValueError):
            Money.of(Decimal("Infinity"), "USD")

    def test_invalid_currency_rejected(self):
        with pytest.raises(ValueError):
            Money.of("1", "XXX1")

    def test_zero(self):
        zero = Money.zero("EUR")
        assert zero.is_zero
        assert zero.currency.code == "EUR"

    def test_hashable_and_equal(self):
        assert Money.of("1.00", "USD") == Money.of("1.00", "USD")
        assert len({Money.of("1.00", "USD"), Money.of("1.00", "USD")}) == 1


class TestMoneyArithmetic:
    """Arithmetic is exact and currency-safe."""

    def test_addition_is_exact(self):
        total = Money.of("0.1", "USD") + Money.of("0.2", "USD")
        assert total.amount == Decimal("0.3")

    def test_subtraction_preserves_negative(self):
        result = Money.of("100", "USD") - Money.of("150", "USD")
        assert result.amount == Decimal("-50")
        assert result.is_negative

    def test_negation_and_abs(self):
        money = Money.of("-12.34", "USD")
        assert (-money).amount == Decimal("12.34")
        assert abs(money).amount == Decimal("12.34")

    def test_multiply_by_percentage_does_not_round(self):
        """1000.01 * 0.333 keeps every digit."""
        result = Money.of("1000.01", "USD") * Percentage.of("0.333")
        assert result.amount == Decimal("333.00333")

    def test_rmul(self):
        assert (Percentage.of("0.5") * Money.of("10", "USD")).amount == Decimal("5.0")
        assert (3 * Money.of("10", "USD")).amount == Decimal("30")

    def test_multiply_by_float_unsupported(self):
        with pytest.raises(TypeError):
            Money.of("10", "USD") * 0.5

    def test_mixed_currency_addition_rejected(self):
        with pytest.raises(ValueError, match="different currencies"):
            Money.of("1", "USD") + Money.of("1", "EUR")

    def test_mixed_currency_comparison_rejected(self):
        with pytest.raises(ValueError):
            Money.of("1", "USD") < Money.of("1", "EUR")

    def test_comparisons(self):
        assert Money.of("1", "USD") < Money.of("2", "USD")
        assert Money.of("2", "USD") >= Money.of("2.00", "USD")


class TestMoneyRounding:
    """Rounding happens only through Money.round()."""

    def test_default_is_half_up(self):
        assert Money.of("2.675", "USD").round().amount == Decimal("2.68")
        assert Money.of("2.665", "USD").round().amount == Decimal("2.67")

    def test_bankers_rounding(self):
        assert Money.of("2.665", "USD").round(ROUND_HALF_EVEN).amount == Decimal("2.66")
        assert Money.of("2.675", "USD").round(ROUND_HALF_EVEN).amount == Decimal("2.68")

    def test_zero_decimal_currency(self):
        assert Money.of("1234.5", "JPY").round().amount == Decimal("1235")

    def test_three_decimal_currency(self):
        assert Money.of("1.23456", "KWD").round().amount == Decimal("1.235")

    def test_unsupported_mode_rejected(self):
        with pytest.raises(ValueError, match="Unsupported rounding"):
            Money.of("1.005", "USD").round(ROUND_DOWN)

    def test_round_returns_new_value(self):
        original = Money.of("1.005", "USD")
        rounded = original.round(ROUND_HALF_UP)
        assert original.amount == Decimal("1.005")
        assert rounded.amount == Decimal("1.01")

    def test_str(self):
        assert str(Money.of("12.50", "USD")) == "12.50 USD"
