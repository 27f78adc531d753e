"""
Data Models Package

This package contains all Pydantic models used in Bill Mate.
All data flowing between storage, the balance engine and the UI
must conform to these schemas.
"""

from billmate.models.ledger import (
    BILL_COLUMNS,
    PAYMENT_COLUMNS,
    ROOMMATE_COLUMNS,
    SUMMARY_COLUMNS,
    BillRecord,
    PaymentRecord,
    Roommate,
    RoommateBalance,
    parse_amount,
    split_names,
)
from billmate.models.invite import (
    INVITE_COLUMNS,
    Invite,
    normalize_token,
)
from billmate.models.validation import (
    ValidationIssue,
    ValidationResult,
)
from billmate.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "BILL_COLUMNS",
    "PAYMENT_COLUMNS",
    "ROOMMATE_COLUMNS",
    "SUMMARY_COLUMNS",
    "BillRecord",
    "PaymentRecord",
    "Roommate",
    "RoommateBalance",
    "parse_amount",
    "split_names",
    # Invite models
    "INVITE_COLUMNS",
    "Invite",
    "normalize_token",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
