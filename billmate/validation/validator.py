"""
Ledger Entry Validation

DESIGN DECISION: Entries are checked before they are appended, because
once a row is in the sheet the balance engine will quietly read a
malformed amount as 0.0. It is better to catch that at the form.

Severity levels:
- error:   the entry is not written
- warning: the entry is written but probably isn't what the user meant
- info:    the entry is fine, here is how it will be counted

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for the user to act on.
"""

import math
from datetime import date, datetime
from typing import Optional, Union

from billmate.balances.engine import normalize_name
from billmate.models.ledger import AMOUNT_PATTERN, split_names
from billmate.models.validation import ValidationIssue, ValidationResult


DATE_FORMAT = "%Y-%m-%d"


def format_entry_date(value: Union[date, str]) -> str:
    """Dates are stored as YYYY-MM-DD strings so they sort as text."""
    if isinstance(value, date):
        return value.strftime(DATE_FORMAT)
    return value.strip()


def parse_entry_amount(text: str) -> Optional[float]:
    """Parse a typed amount; None if it isn't a plain finite number."""
    clean = text.strip()
    if not AMOUNT_PATTERN.fullmatch(clean):
        return None
    amount = float(clean)
    return amount if math.isfinite(amount) else None


class EntryValidator:
    """
    Validates bill and payment entries before they reach the ledger.
    """

    def _check_date(self, value: Union[date, str]) -> list[ValidationIssue]:
        text = format_entry_date(value)
        try:
            datetime.strptime(text, DATE_FORMAT)
        except ValueError:
            return [ValidationIssue(
                field="date",
                issue_type="invalid_format",
                message=f"Date '{text}' is not in YYYY-MM-DD format",
                severity="error",
                suggested_fix="Pick the date from the calendar",
            )]
        return []

    def _check_paid_by(self, paid_by: str) -> list[ValidationIssue]:
        if not paid_by.strip():
            return [ValidationIssue(
                field="paid_by",
                issue_type="missing",
                message="Paid by cannot be empty.",
                severity="error",
            )]
        return []

    def _check_amount(self, amount_text: str) -> tuple[Optional[float], list[ValidationIssue]]:
        if not amount_text.strip():
            return None, [ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
                severity="error",
            )]

        amount = parse_entry_amount(amount_text)
        if amount is None:
            return None, [ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message=f"Amount '{amount_text.strip()}' is not a number",
                severity="error",
                suggested_fix="Enter digits only, e.g. 42.50",
            )]

        issues = []
        if amount == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="no_effect",
                message="Amount is zero, so this entry won't change any balance",
                severity="warning",
            ))
        elif amount < 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({amount:,.2f}) is negative and will reverse the usual direction",
                severity="warning",
                suggested_fix="Use a positive amount unless this is a refund",
            ))
        return amount, issues

    def validate_bill(
        self,
        entry_date: Union[date, str],
        paid_by: str,
        amount: str,
        split_with: str,
        manager_name: Optional[str] = None,
        roommates: Optional[list[str]] = None,
    ) -> ValidationResult:
        """
        Validate a bill entry.

        Args:
            entry_date: Bill date
            paid_by: Who fronted the money
            amount: Amount as typed
            split_with: Comma-separated participants
            manager_name: If given, note when the manager shares the bill
            roommates: If given, warn about names not on the roommate list
        """
        issues = []
        issues.extend(self._check_date(entry_date))
        issues.extend(self._check_paid_by(paid_by))
        _, amount_issues = self._check_amount(amount)
        issues.extend(amount_issues)

        participants = split_names(split_with)
        if not participants:
            issues.append(ValidationIssue(
                field="split_with",
                issue_type="no_effect",
                message="Nobody to split with, so this bill won't be applied to anyone",
                severity="warning",
                suggested_fix="List the people sharing this bill, separated by commas",
            ))

        if roommates is not None:
            known = {normalize_name(name) for name in roommates}
            unknown = [
                name for name in participants + [paid_by.strip()]
                if name and normalize_name(name) not in known
            ]
            if unknown:
                issues.append(ValidationIssue(
                    field="split_with",
                    issue_type="unknown_name",
                    message=f"Not on the roommate list: {', '.join(dict.fromkeys(unknown))}",
                    severity="warning",
                    suggested_fix="Check the spelling or add them in Manage Home",
                ))

        if manager_name and participants:
            manager = normalize_name(manager_name)
            if any(normalize_name(name) == manager for name in participants):
                issues.append(ValidationIssue(
                    field="split_with",
                    issue_type="manager_share",
                    message=(
                        f"{manager_name.strip()}'s share of 1/{len(participants)} "
                        "is covered by the manager"
                    ),
                    severity="info",
                ))

        return ValidationResult(entity_type="bill", issues=issues)

    def validate_payment(
        self,
        entry_date: Union[date, str],
        paid_by: str,
        amount: str,
        manager_name: Optional[str] = None,
    ) -> ValidationResult:
        """Validate a payment entry."""
        issues = []
        issues.extend(self._check_date(entry_date))
        issues.extend(self._check_paid_by(paid_by))
        _, amount_issues = self._check_amount(amount)
        issues.extend(amount_issues)

        if manager_name and paid_by.strip() and normalize_name(paid_by) == normalize_name(manager_name):
            issues.append(ValidationIssue(
                field="paid_by",
                issue_type="no_effect",
                message="Payments from the manager don't change any balance",
                severity="warning",
            ))

        return ValidationResult(entity_type="payment", issues=issues)

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.
        """
        if not result.issues:
            return "✅ Looks good."

        lines = []

        if result.has_errors:
            lines.append("❌ This entry can't be saved yet:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            lines.append("")
            lines.append("⚠️ Please double-check:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        if result.notes:
            lines.append("")
            for note in result.notes:
                lines.append(f"ℹ️ {note}")

        return "\n".join(lines).strip()
