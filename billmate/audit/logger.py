"""
Audit Logger

DESIGN DECISION: Every write to a home (bills, payments, roommates,
invites, the published summary) is logged. This gives:
1. A trail of who changed the ledger and when
2. Something to read when the Sheets API misbehaves
3. A history the manager can open next to the ledger

The audit logger:
- Is async so it fits in the flows without blocking them
- Never crashes the app if persisting the event fails
- Carries a correlation ID through all events of one user action
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from billmate.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from billmate.services.storage import AuditStorageInterface


structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Events always go to the structured local log, and to the
    AuditLog worksheet when a storage backend is configured.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("billmate.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the storage write succeeded (or no storage is configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # The action itself already succeeded; losing its audit row is not fatal
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_home_created(
        self,
        spreadsheet_id: str,
        manager_name: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.home_created(
            spreadsheet_id=spreadsheet_id,
            manager_name=manager_name,
            correlation_id=correlation_id,
        ))

    async def log_home_joined(self, spreadsheet_id: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.home_joined(
            spreadsheet_id=spreadsheet_id,
            correlation_id=correlation_id,
        ))

    async def log_home_left(self, spreadsheet_id: Optional[str], correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.home_left(
            spreadsheet_id=spreadsheet_id,
            correlation_id=correlation_id,
        ))

    async def log_roommate_added(self, name: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.roommate_added(
            name=name,
            correlation_id=correlation_id,
        ))

    async def log_bill_added(
        self,
        paid_by: str,
        amount: float,
        split_with: str,
        correlation_id: UUID,
    ) -> None:
        """Log a bill appended to the ledger."""
        await self.log(AuditEventBuilder.bill_added(
            paid_by=paid_by,
            amount=amount,
            split_with=split_with,
            correlation_id=correlation_id,
        ))

    async def log_payment_added(
        self,
        paid_by: str,
        amount: float,
        correlation_id: UUID,
    ) -> None:
        """Log a payment appended to the ledger."""
        await self.log(AuditEventBuilder.payment_added(
            paid_by=paid_by,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_entry_rejected(
        self,
        entity_type: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log an entry that failed validation."""
        await self.log(AuditEventBuilder.entry_rejected(
            entity_type=entity_type,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_balances_computed(
        self,
        manager_name: str,
        bill_count: int,
        payment_count: int,
        balance_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.balances_computed(
            manager_name=manager_name,
            bill_count=bill_count,
            payment_count=payment_count,
            balance_count=balance_count,
            correlation_id=correlation_id,
        ))

    async def log_summary_published(self, row_count: int, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.summary_published(
            row_count=row_count,
            correlation_id=correlation_id,
        ))

    async def log_invite_created(
        self,
        token: str,
        spreadsheet_id: str,
        created_by: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.invite_created(
            token=token,
            spreadsheet_id=spreadsheet_id,
            created_by=created_by,
            correlation_id=correlation_id,
        ))

    async def log_invite_redeemed(
        self,
        token: str,
        spreadsheet_id: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.invite_redeemed(
            token=token,
            spreadsheet_id=spreadsheet_id,
            correlation_id=correlation_id,
        ))

    async def log_invite_rejected(
        self,
        token: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.invite_rejected(
            token=token,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (adding a bill, refreshing
    balances) and pass it through everything that action touches.
    """
    return uuid4()
