"""
Unit tests for the Percentage value object.

Verifies:
- Canonical [0, 1] fraction representation
- Explicit conversion from percent points
- Range and type validation
"""

from decimal import Decimal

import pytest

from revsplit_kernel.domain.values import Percentage


class TestPercentage:
    """Tests for Percentage construction and helpers."""

    def test_fraction(self):
        assert Percentage.of("0.30").value == Decimal("0.30")

    def test_from_points(self):
        """30 percent points is the fraction 0.30."""
        assert Percentage.from_points(30).value == Decimal("0.3")
        assert Percentage.from_points("12.5").value == Decimal("0.125")

    def test_bounds_inclusive(self):
        assert Percentage.zero().value == Decimal("0")
        assert Percentage.whole().value == Decimal("1")

    @pytest.mark.parametrize("raw", ["-0.01", "1.0001", "30"])
    def test_out_of_range_rejected(self, raw):
        with pytest.raises(ValueError, match="within"):
            Percentage.of(raw)

    def test_points_above_hundred_rejected(self):
        with pytest.raises(ValueError):
            Percentage.from_points(101)

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            Percentage.of(0.3)

    def test_complement(self):
        assert Percentage.of("0.30").complement() == Percentage.of("0.70")
        assert Percentage.zero().complement() == Percentage.whole()

    def test_points_and_str(self):
        pct = Percentage.of("0.305")
        assert pct.points == Decimal("30.500")
        assert str(pct) == "30.5%"
        assert str(Percentage.of("0.30")) == "30%"
