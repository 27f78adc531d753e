"""Tests for ledger entry validation."""

from datetime import date

import pytest

from billmate.validation import EntryValidator, format_entry_date, parse_entry_amount


@pytest.fixture
def validator():
    return EntryValidator()


def issue_types(result) -> set[str]:
    return {i.issue_type for i in result.issues}


class TestHelpers:
    """Tests for input helpers."""

    def test_format_entry_date(self):
        """Test that date objects become YYYY-MM-DD."""
        assert format_entry_date(date(2024, 1, 5)) == "2024-01-05"
        assert format_entry_date(" 2024-01-05 ") == "2024-01-05"

    def test_parse_entry_amount(self):
        """Test typed amount parsing."""
        assert parse_entry_amount(" 12.50 ") == 12.5
        assert parse_entry_amount("twelve") is None
        assert parse_entry_amount("nan") is None
        assert parse_entry_amount("1_000") is None
        assert parse_entry_amount("1,000") is None


class TestValidateBill:
    """Tests for bill validation."""

    def test_valid_bill(self, validator):
        """Test a clean bill."""
        result = validator.validate_bill(date(2024, 1, 5), "Kyle", "90", "Alex, Sam")

        assert result.is_valid
        assert result.issues == []

    def test_empty_payer(self, validator):
        """Test that a bill needs a payer."""
        result = validator.validate_bill("2024-01-05", "  ", "90", "Alex")

        assert result.has_errors
        assert "Paid by cannot be empty." in [i.message for i in result.issues]

    def test_missing_amount(self, validator):
        """Test that a blank amount blocks the entry."""
        result = validator.validate_bill("2024-01-05", "Kyle", "", "Alex")

        assert result.has_errors
        assert "missing" in issue_types(result)

    def test_non_numeric_amount(self, validator):
        """Test that text amounts block the entry."""
        result = validator.validate_bill("2024-01-05", "Kyle", "$90", "Alex")

        assert result.has_errors
        assert "invalid_format" in issue_types(result)

    def test_bad_date(self, validator):
        """Test that dates must be YYYY-MM-DD."""
        result = validator.validate_bill("05/01/2024", "Kyle", "90", "Alex")

        assert result.has_errors
        assert result.issues[0].field == "date"

    def test_zero_amount_warns(self, validator):
        """Test that a zero bill is allowed but flagged."""
        result = validator.validate_bill("2024-01-05", "Kyle", "0", "Alex")

        assert result.is_valid
        assert len(result.warnings) == 1

    def test_negative_amount_warns(self, validator):
        """Test that refunds are allowed but flagged."""
        result = validator.validate_bill("2024-01-05", "Kyle", "-20", "Alex")

        assert result.is_valid
        assert "suspicious_value" in issue_types(result)

    def test_empty_split_warns(self, validator):
        """Test that a bill nobody shares is flagged."""
        result = validator.validate_bill("2024-01-05", "Kyle", "90", " , ")

        assert result.is_valid
        assert any(i.field == "split_with" and i.severity == "warning" for i in result.issues)

    def test_unknown_names_warn(self, validator):
        """Test names missing from the roommate list."""
        result = validator.validate_bill(
            "2024-01-05", "Kyle", "90", "alex, Jo",
            roommates=["Kyle", "Alex", "Sam"],
        )

        assert result.is_valid
        assert result.warnings == ["Not on the roommate list: Jo"]

    def test_manager_in_split_is_noted(self, validator):
        """Test the note that the manager's share is absorbed."""
        result = validator.validate_bill(
            "2024-01-05", "Kyle", "90", "kyle, Alex, Sam",
            manager_name="Kyle",
        )

        assert result.is_valid
        assert result.notes == ["Kyle's share of 1/3 is covered by the manager"]


class TestValidatePayment:
    """Tests for payment validation."""

    def test_valid_payment(self, validator):
        """Test a clean payment."""
        result = validator.validate_payment("2024-01-06", "Alex", "33.34", manager_name="Kyle")

        assert result.is_valid
        assert result.entity_type == "payment"
        assert result.issues == []

    def test_empty_payer(self, validator):
        """Test that a payment needs a payer."""
        result = validator.validate_payment("2024-01-06", "", "10")

        assert result.has_errors

    def test_payment_from_manager_warns(self, validator):
        """Test that the manager paying is flagged as having no effect."""
        result = validator.validate_payment("2024-01-06", " kyle", "10", manager_name="Kyle")

        assert result.is_valid
        assert "no_effect" in issue_types(result)


class TestUserFriendlySummary:
    """Tests for the summary shown under the form."""

    def test_clean(self, validator):
        """Test the all-clear message."""
        result = validator.validate_payment("2024-01-06", "Alex", "10")

        assert validator.get_user_friendly_summary(result) == "✅ Looks good."

    def test_errors_and_fixes(self, validator):
        """Test that errors come with their suggested fixes."""
        result = validator.validate_bill("2024-01-05", "", "abc", "Alex")
        summary = validator.get_user_friendly_summary(result)

        assert summary.startswith("❌")
        assert "Paid by cannot be empty." in summary
        assert "💡 Enter digits only" in summary

    def test_warnings_and_notes(self, validator):
        """Test that non-blocking issues are listed."""
        result = validator.validate_bill("2024-01-05", "Kyle", "0", "Kyle", manager_name="Kyle")
        summary = validator.get_user_friendly_summary(result)

        assert "⚠️" in summary
        assert "ℹ️" in summary
