"""
Tests for the conversion and formatting helpers.
"""

from decimal import Decimal

import pytest

from src.position_manager import fp
from src.utils.helpers import format_amount, safe_decimal


class TestSafeDecimal:
    @pytest.mark.parametrize("value,expected", [
        ("1.0857", Decimal("1.0857")),
        (1.0857, Decimal("1.0857")),
        (3, Decimal(3)),
    ])
    def test_converts(self, value, expected):
        assert safe_decimal(value) == expected

    @pytest.mark.parametrize("value", [None, "", " ", "n/a", True])
    def test_missing_or_invalid(self, value):
        assert safe_decimal(value) is None
        assert safe_decimal(value, Decimal(0)) == Decimal(0)


class TestFormatAmount:
    def test_thousands_separator(self):
        assert format_amount(Decimal("1234567.5")) == "1,234,567.50"

    def test_truncates(self):
        assert format_amount(Decimal("99.999")) == "99.99"
        assert format_amount(Decimal("-10.009")) == "-10.00"

    def test_fixed_point(self):
        assert format_amount(fp("1.23456"), 4) == "1.2345"
