"""
Tests for monetary amount helpers
"""

import pytest
from decimal import Decimal

from banking_ledger.errors import InvalidAmountError
from banking_ledger.money import decimal_from_string, format_amount, quantize, to_amount


class TestToAmount:
    """Conversion of caller input to cent-precision Decimals"""

    def test_decimal_is_quantized(self):
        assert to_amount(Decimal("10")) == Decimal("10.00")
        assert to_amount(Decimal("10.005")) == Decimal("10.01")

    def test_float_goes_through_string(self):
        assert to_amount(0.1) == Decimal("0.10")
        assert to_amount(19.99) == Decimal("19.99")

    def test_int(self):
        assert to_amount(250) == Decimal("250.00")

    def test_currency_string(self):
        assert to_amount("$1,250.50") == Decimal("1250.50")

    def test_comma_decimal_separator(self):
        assert decimal_from_string("12,5") == Decimal("12.5")
        assert decimal_from_string("1,250") == Decimal("1250")

    def test_thousands_separators(self):
        assert to_amount("1,000,000") == Decimal("1000000.00")
        assert to_amount("$1,234,567.89") == Decimal("1234567.89")

    def test_exponent_is_read_as_a_number(self):
        assert to_amount("1e3") == Decimal("1000.00")

    @pytest.mark.parametrize("value", ["12abc", "abc12", "1.2.3", "12,3456,7", "1e3x"])
    def test_rejects_stray_characters(self, value):
        with pytest.raises(InvalidAmountError):
            to_amount(value)

    @pytest.mark.parametrize("value", [Decimal("1e30"), 1e30, "1" + "0" * 30, "1e30"])
    def test_rejects_amounts_too_large_for_cents(self, value):
        with pytest.raises(InvalidAmountError):
            to_amount(value)

    @pytest.mark.parametrize("value", ["", "   ", "abc", float("nan"), float("inf"), True])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(InvalidAmountError):
            to_amount(value)

    def test_round_half_up(self):
        assert quantize(Decimal("2.345")) == Decimal("2.35")
        assert quantize(Decimal("-2.345")) == Decimal("-2.35")


def test_format_amount():
    assert format_amount(Decimal("1250.5")) == "$1,250.50"
    assert format_amount(Decimal("0")) == "$0.00"
