"""Tests for balance presentation helpers."""

from billmate.balances import BalanceTone, balance_tone, format_currency, summary_rows
from billmate.models import SUMMARY_COLUMNS, RoommateBalance


class TestFormatCurrency:
    """Tests for currency formatting."""

    def test_positive_amount(self):
        """Test thousands separator and two decimals."""
        assert format_currency(1234.5) == "$1,234.50"

    def test_negative_amount(self):
        """Test that the sign goes before the symbol."""
        assert format_currency(-30) == "-$30.00"

    def test_tiny_negative_rounds_away_from_zero_display(self):
        """Test that a fraction of a cent still shows its sign when it rounds to a cent."""
        assert format_currency(100 / 3 - 33.34) == "-$0.01"

    def test_no_negative_zero(self):
        """Test that amounts rounding to zero show as $0.00."""
        assert format_currency(-0.001) == "$0.00"
        assert format_currency(0.0) == "$0.00"

    def test_other_currencies(self):
        """Test known symbols and the fallback for unknown codes."""
        assert format_currency(10, "eur") == "€10.00"
        assert format_currency(10, "INR") == "₹10.00"
        assert format_currency(10, "CHF") == "CHF 10.00"


class TestBalanceTone:
    """Tests for balance coloring."""

    def test_tones(self):
        """Test owes, credit and settled."""
        assert balance_tone(5.0) == BalanceTone.OWES
        assert balance_tone(-5.0) == BalanceTone.CREDIT
        assert balance_tone(0.0) == BalanceTone.SETTLED


class TestSummaryRows:
    """Tests for Summary sheet rows."""

    def test_header_and_rounding(self):
        """Test header first and amounts rounded to cents."""
        rows = summary_rows([
            RoommateBalance(name="Sam", amount_owed=100 / 3),
            RoommateBalance(name="Alex", amount_owed=-0.006666),
        ])

        assert rows[0] == SUMMARY_COLUMNS
        assert rows[1] == ["Sam", 33.33]
        assert rows[2] == ["Alex", -0.01]

    def test_empty_balances(self):
        """Test that an empty summary still has its header."""
        assert summary_rows([]) == [SUMMARY_COLUMNS]
