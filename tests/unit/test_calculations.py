"""
Unit Tests - Ratio Calculator and Ranking
"""
from decimal import Decimal
from types import SimpleNamespace

import pytest

from erp_insights.insights.calculations import (
    format_rate,
    growth_rate,
    quantize_money,
    rate,
    safe_divide,
    to_decimal,
)
from erp_insights.insights.exceptions import InvalidInputError
from erp_insights.insights.ranking import top_n, validate_limit


class TestCalculations:
    """Tests for the shared arithmetic helpers"""

    def test_to_decimal(self):
        assert to_decimal(None) == Decimal("0")
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal(7) == Decimal("7")

    def test_quantize_rounds_half_up(self):
        assert quantize_money(Decimal("0.125")) == Decimal("0.13")
        assert quantize_money(Decimal("241.935")) == Decimal("241.94")

    def test_safe_divide_by_zero(self):
        assert safe_divide(5, 0) == 0
        assert safe_divide(Decimal("10"), Decimal("4")) == Decimal("2.5")

    def test_rate_formatting(self):
        assert rate(1, 3) == "33.33"
        assert rate(2, 3) == "66.67"
        assert rate(84, 100) == "84.00"

    def test_rate_zero_denominator(self):
        assert rate(0, 0) == "0.00"
        assert rate(10, 0) == "0.00"

    def test_format_rate_has_no_negative_zero(self):
        assert format_rate(Decimal("-0.001")) == "0.00"

    def test_growth_rate(self):
        # Sept 15,000 -> Oct 22,000
        assert growth_rate(22000, 15000) == "46.67"
        assert growth_rate(0, 10) == "-100.00"

    def test_growth_rate_from_zero(self):
        assert growth_rate(5, 0) == "100.00"
        assert growth_rate(0, 0) == "0.00"


class TestRanking:
    """Tests for top_n"""

    def test_ties_break_on_ascending_id(self):
        rows = [
            SimpleNamespace(id=7, revenue=Decimal("1000")),
            SimpleNamespace(id=3, revenue=Decimal("1000")),
            SimpleNamespace(id=5, revenue=Decimal("2000")),
        ]

        ranked = top_n(rows, metric=lambda r: r.revenue, key=lambda r: r.id, limit=3)

        assert [r.id for r in ranked] == [5, 3, 7]

    def test_limit_truncates(self):
        rows = [SimpleNamespace(id=i, revenue=Decimal(i)) for i in range(1, 6)]

        ranked = top_n(rows, metric=lambda r: r.revenue, key=lambda r: r.id, limit=2)

        assert [r.id for r in ranked] == [5, 4]

    def test_limit_above_size(self):
        rows = [SimpleNamespace(id=1, revenue=Decimal(1))]

        assert len(top_n(rows, metric=lambda r: r.revenue, key=lambda r: r.id, limit=10)) == 1

    def test_non_positive_limit(self):
        with pytest.raises(InvalidInputError):
            top_n([], metric=lambda r: r, key=lambda r: r, limit=0)

    def test_validate_limit(self):
        assert validate_limit(10, 100) == 10

        with pytest.raises(InvalidInputError):
            validate_limit(-1, 100)
        with pytest.raises(InvalidInputError):
            validate_limit(101, 100)
