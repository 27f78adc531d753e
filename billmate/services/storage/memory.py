"""
In-Memory Storage

Process-local implementations of the storage interfaces. Used by the
test suite and by the app when Google Sheets isn't configured, so the
whole flow can be exercised without a live API.

Nothing here survives a restart.
"""

from typing import Optional
from uuid import UUID, uuid4

from billmate.models.audit import AuditEvent
from billmate.models.invite import Invite, normalize_token
from billmate.models.ledger import BillRecord, PaymentRecord, RoommateBalance
from billmate.services.storage.interface import (
    AuditStorageInterface,
    ConflictError,
    DuplicateError,
    HomeNotConfiguredError,
    HomeStorageInterface,
    InviteStorageInterface,
    LedgerStorageInterface,
    ManagerNotSetError,
    NotFoundError,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Ledger kept in two lists, in append order."""

    def __init__(
        self,
        bills: Optional[list[BillRecord]] = None,
        payments: Optional[list[PaymentRecord]] = None,
    ):
        self._bills = list(bills or [])
        self._payments = list(payments or [])

    async def fetch_bills(self) -> list[BillRecord]:
        return sorted(self._bills, key=lambda b: b.date, reverse=True)

    async def fetch_payments(self) -> list[PaymentRecord]:
        return sorted(self._payments, key=lambda p: p.date, reverse=True)

    async def append_bill(self, bill: BillRecord) -> bool:
        self._bills.append(bill)
        return True

    async def append_payment(self, payment: PaymentRecord) -> bool:
        self._payments.append(payment)
        return True


class InMemoryHomeStorage(HomeStorageInterface):
    """A single home held in memory."""

    def __init__(
        self,
        spreadsheet_id: Optional[str] = None,
        manager_name: Optional[str] = None,
        roommates: Optional[list[str]] = None,
    ):
        self.spreadsheet_id = spreadsheet_id
        self.manager_name = manager_name
        self.roommates = list(roommates or [])
        self.summary: list[RoommateBalance] = []

    def _require_home(self) -> None:
        if not self.spreadsheet_id:
            raise HomeNotConfiguredError()

    async def ensure_spreadsheet(self) -> str:
        if not self.spreadsheet_id:
            self.spreadsheet_id = f"local-{uuid4().hex[:12]}"
        return self.spreadsheet_id

    async def open_home(self, spreadsheet_id: str) -> None:
        self.spreadsheet_id = spreadsheet_id

    async def close_home(self) -> None:
        self.spreadsheet_id = None
        self.manager_name = None
        self.roommates = []
        self.summary = []

    async def initialize_home(self, manager_name: str) -> None:
        self._require_home()
        clean = manager_name.strip()
        if not clean:
            raise ManagerNotSetError("Manager name cannot be empty.")
        self.manager_name = clean
        if clean.casefold() not in {name.casefold() for name in self.roommates}:
            self.roommates.append(clean)

    async def fetch_manager_name(self) -> str:
        self._require_home()
        manager = (self.manager_name or "").strip()
        if not manager:
            raise ManagerNotSetError("Home has no manager name.")
        return manager

    async def fetch_roommates(self) -> list[str]:
        self._require_home()
        seen = set()
        names = []
        for raw in self.roommates:
            name = raw.strip()
            if name and name.casefold() not in seen:
                seen.add(name.casefold())
                names.append(name)
        return names

    async def add_roommate(self, name: str) -> bool:
        self._require_home()
        self.roommates.append(name.strip())
        return True

    async def store_summary(self, balances: list[RoommateBalance]) -> bool:
        self._require_home()
        self.summary = list(balances)
        return True


class InMemoryInviteStorage(InviteStorageInterface):
    """Invite registry as a dict keyed by token."""

    def __init__(self):
        self._invites: dict[str, Invite] = {}

    async def save_invite(self, invite: Invite) -> bool:
        if invite.token in self._invites:
            raise DuplicateError(f"Invite token already exists: {invite.token}")
        self._invites[invite.token] = invite
        return True

    async def get_invite(self, token: str) -> Optional[Invite]:
        return self._invites.get(normalize_token(token))

    async def record_use(self, invite: Invite) -> Invite:
        stored = self._invites.get(invite.token)
        if stored is None:
            raise NotFoundError(f"Invite not found: {invite.token}")
        if stored.uses != invite.uses:
            raise ConflictError(f"Invite {invite.token} was used concurrently")
        updated = stored.model_copy(update={"uses": stored.uses + 1})
        self._invites[invite.token] = updated
        return updated


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
