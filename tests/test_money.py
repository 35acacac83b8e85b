"""
Test suite for money helpers
"""

import pytest
from decimal import Decimal, DefaultContext, getcontext

from factoring_desk.money import (
    ZERO, to_decimal, round_cents, sum_amounts, amounts_match, format_currency
)


class TestToDecimal:
    """Test conversion of form and JSON values"""

    def test_strings_and_ints(self):
        """Test numeric strings and integers"""
        assert to_decimal("1050.25") == Decimal('1050.25')
        assert to_decimal(15) == Decimal('15')

    def test_float_goes_through_repr(self):
        """Test floats do not carry binary noise"""
        assert to_decimal(0.1) == Decimal('0.1')

    def test_decimal_context_untouched(self):
        """Test importing the helpers leaves the decimal context at its default"""
        assert getcontext().prec == DefaultContext.prec

    def test_blank_is_zero(self):
        """Test empty form fields count as zero"""
        assert to_decimal(None) == ZERO
        assert to_decimal("") == ZERO

    def test_invalid(self):
        """Test non-numeric input is rejected"""
        with pytest.raises(ValueError, match="Invalid monetary amount"):
            to_decimal("ten dollars")


class TestArithmetic:
    """Test rounding, sums and tolerance"""

    def test_round_cents_half_up(self):
        """Test half-cent amounts round up"""
        assert round_cents(Decimal('1.005')) == Decimal('1.01')
        assert round_cents(Decimal('333.3333')) == Decimal('333.33')

    def test_sum_amounts(self):
        """Test sums start from an exact zero"""
        assert sum_amounts([]) == ZERO
        assert sum_amounts([Decimal('0.10'), "0.20", 1]) == Decimal('1.30')

    def test_amounts_match_is_inclusive(self):
        """Test a one-cent difference still matches"""
        assert amounts_match(Decimal('1000'), Decimal('999.99'))
        assert amounts_match(Decimal('1000'), Decimal('1000.01'))
        assert not amounts_match(Decimal('1000'), Decimal('999.98'))


class TestFormatCurrency:
    """Test display formatting"""

    @pytest.mark.parametrize("amount,expected", [
        (Decimal('1234.5'), "$1,234.50"),
        (Decimal('0'), "$0.00"),
        (Decimal('-20'), "-$20.00"),
        (Decimal('1000000'), "$1,000,000.00"),
    ])
    def test_format(self, amount, expected):
        """Test thousands separators, cents and sign"""
        assert format_currency(amount) == expected
