"""
Audit Models for Bill Mate

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of who changed the ledger and when
2. Debugging information when a sync with Sheets goes wrong
3. A history the manager can read next to the ledger itself

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Home lifecycle
    HOME_CREATED = "home_created"
    HOME_JOINED = "home_joined"
    HOME_LEFT = "home_left"
    ROOMMATE_ADDED = "roommate_added"

    # Ledger writes
    BILL_ADDED = "bill_added"
    PAYMENT_ADDED = "payment_added"
    ENTRY_REJECTED = "entry_rejected"

    # Balances
    BALANCES_COMPUTED = "balances_computed"
    SUMMARY_PUBLISHED = "summary_published"

    # Invites
    INVITE_CREATED = "invite_created"
    INVITE_REDEEMED = "invite_redeemed"
    INVITE_REJECTED = "invite_rejected"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'bill', 'payment', 'invite', 'home')"
    )
    entity_key: Optional[str] = Field(
        default=None,
        description="Natural key of the entity (token, spreadsheet id, roommate name)"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one refresh)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_key": self.entity_key,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_key,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_key or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]

    @classmethod
    def from_sheets_row(cls, row: list) -> "AuditEvent":
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return cls(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_key=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.bill_added(paid_by, amount, correlation_id)
        event = AuditEventBuilder.invite_redeemed(token, spreadsheet_id, correlation_id)
    """

    @staticmethod
    def home_created(
        spreadsheet_id: str,
        manager_name: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HOME_CREATED,
            entity_type="home",
            entity_key=spreadsheet_id,
            correlation_id=correlation_id,
            description=f"Home created with manager {manager_name}",
            details={"manager_name": manager_name},
            is_user_action=True,
        )

    @staticmethod
    def home_joined(
        spreadsheet_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HOME_JOINED,
            entity_type="home",
            entity_key=spreadsheet_id,
            correlation_id=correlation_id,
            description="Device joined a home via invite",
            is_user_action=True,
        )

    @staticmethod
    def home_left(
        spreadsheet_id: Optional[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HOME_LEFT,
            entity_type="home",
            entity_key=spreadsheet_id,
            correlation_id=correlation_id,
            description="Device forgot its home",
            is_user_action=True,
        )

    @staticmethod
    def roommate_added(
        name: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ROOMMATE_ADDED,
            entity_type="roommate",
            entity_key=name,
            correlation_id=correlation_id,
            description=f"Roommate added: {name}",
            is_user_action=True,
        )

    @staticmethod
    def bill_added(
        paid_by: str,
        amount: float,
        split_with: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_ADDED,
            entity_type="bill",
            correlation_id=correlation_id,
            description=f"Bill added: {paid_by} paid {amount:.2f}",
            details={
                "paid_by": paid_by,
                "amount": amount,
                "split_with": split_with,
            },
            is_user_action=True,
        )

    @staticmethod
    def payment_added(
        paid_by: str,
        amount: float,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_ADDED,
            entity_type="payment",
            correlation_id=correlation_id,
            description=f"Payment added: {paid_by} repaid {amount:.2f}",
            details={
                "paid_by": paid_by,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def entry_rejected(
        entity_type: str,
        issues: list[dict],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} entry rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def balances_computed(
        manager_name: str,
        bill_count: int,
        payment_count: int,
        balance_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCES_COMPUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="summary",
            correlation_id=correlation_id,
            description=f"Balances computed for {balance_count} roommates",
            details={
                "manager_name": manager_name,
                "bill_count": bill_count,
                "payment_count": payment_count,
                "balance_count": balance_count,
            },
        )

    @staticmethod
    def summary_published(
        row_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUMMARY_PUBLISHED,
            entity_type="summary",
            correlation_id=correlation_id,
            description=f"Summary sheet rewritten with {row_count} rows",
            details={"row_count": row_count},
        )

    @staticmethod
    def invite_created(
        token: str,
        spreadsheet_id: str,
        created_by: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVITE_CREATED,
            entity_type="invite",
            entity_key=token,
            correlation_id=correlation_id,
            description=f"Invite created by {created_by}",
            details={"spreadsheet_id": spreadsheet_id},
            is_user_action=True,
        )

    @staticmethod
    def invite_redeemed(
        token: str,
        spreadsheet_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVITE_REDEEMED,
            entity_type="invite",
            entity_key=token,
            correlation_id=correlation_id,
            description="Invite redeemed",
            details={"spreadsheet_id": spreadsheet_id},
            is_user_action=True,
        )

    @staticmethod
    def invite_rejected(
        token: str,
        reason: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVITE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="invite",
            entity_key=token or None,
            correlation_id=correlation_id,
            description="Invite could not be redeemed",
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
