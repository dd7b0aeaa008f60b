"""Tests for currency formatting."""

from decimal import Decimal

import pytest

from tutaviendo.currency import currency_symbol, format_currency


class TestFormatCurrency:
    def test_known_currency_uses_symbol(self):
        assert format_currency(25.5, "USD") == "$25.50"
        assert format_currency(3, "EUR") == "€3.00"
        assert format_currency(1234.5, "DOP") == "RD$1234.50"

    def test_unknown_currency_falls_back_to_dollar(self):
        assert format_currency(10, "UNKNOWN") == "$10.00"

    def test_missing_currency_code(self):
        assert format_currency(1, None) == "$1.00"

    def test_nan_renders_zero(self):
        assert format_currency(float("nan"), "USD") == "$0.00"

    @pytest.mark.parametrize("amount", [None, "10", True, float("inf")])
    def test_non_numbers_render_zero(self, amount):
        assert format_currency(amount, "EUR") == "$0.00"

    def test_no_thousands_separator(self):
        assert format_currency(1234567.891, "USD") == "$1234567.89"

    def test_decimal_amount(self):
        assert format_currency(Decimal("7.5"), "PEN") == "S/7.50"


def test_currency_symbol_lookup():
    assert currency_symbol("BRL") == "R$"
    assert currency_symbol("XYZ") == "$"
