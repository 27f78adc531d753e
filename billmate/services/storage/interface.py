"""
Abstract Storage Interface

DESIGN DECISION: We define abstract interfaces for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing and offline mode
3. Keep the balance engine and flows decoupled from any live API

The interfaces are intentionally small - just what the app does with
its spreadsheet: read and append ledger rows, set up a home, and
issue/redeem invites.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from billmate.models.audit import AuditEvent
from billmate.models.invite import Invite
from billmate.models.ledger import BillRecord, PaymentRecord, RoommateBalance


class LedgerStorageInterface(ABC):
    """
    Abstract interface for the bills/payments ledger.

    Any storage implementation (Google Sheets, SQLite, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def fetch_bills(self) -> list[BillRecord]:
        """
        Fetch every bill, newest date first.

        Rows too short to be a bill are dropped; malformed amounts read as 0.0.

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def fetch_payments(self) -> list[PaymentRecord]:
        """
        Fetch every payment, newest date first.

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def append_bill(self, bill: BillRecord) -> bool:
        """
        Append a bill to the ledger.

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def append_payment(self, payment: PaymentRecord) -> bool:
        """
        Append a payment to the ledger.

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass


class HomeStorageInterface(ABC):
    """
    Abstract interface for the home itself: which spreadsheet,
    who manages it, and who lives there.
    """

    @abstractmethod
    async def ensure_spreadsheet(self) -> str:
        """
        Make sure a home spreadsheet is open, creating one if needed.

        Returns:
            The spreadsheet ID
        """
        pass

    @abstractmethod
    async def open_home(self, spreadsheet_id: str) -> None:
        """Point this storage (and everything sharing its client) at a home."""
        pass

    @abstractmethod
    async def initialize_home(self, manager_name: str) -> None:
        """
        Write header rows, record the manager, add them to Roommates.

        Header writes overwrite row 1, so this is safe to repeat.
        """
        pass

    @abstractmethod
    async def fetch_manager_name(self) -> str:
        """
        Read the manager name recorded on the home.

        Raises:
            ManagerNotSetError: If the home has no manager name
        """
        pass

    @abstractmethod
    async def fetch_roommates(self) -> list[str]:
        """
        List roommate names.

        Names are trimmed, blanks dropped, and duplicates (ignoring case)
        removed keeping the first spelling.
        """
        pass

    @abstractmethod
    async def add_roommate(self, name: str) -> bool:
        """Append a roommate name."""
        pass

    @abstractmethod
    async def store_summary(self, balances: list[RoommateBalance]) -> bool:
        """Replace the stored summary with these balances."""
        pass

    @abstractmethod
    async def close_home(self) -> None:
        """
        Stop pointing at the current home.

        The next `ensure_spreadsheet` starts a fresh home instead of
        reusing this one. Stored data is left alone.
        """
        pass


class InviteStorageInterface(ABC):
    """
    Abstract interface for the invite token registry.

    The registry is shared between homes: a resident redeems a token
    before their device knows which spreadsheet it belongs to.
    """

    @abstractmethod
    async def save_invite(self, invite: Invite) -> bool:
        """
        Store a new invite.

        Raises:
            DuplicateError: If the token is already taken
        """
        pass

    @abstractmethod
    async def get_invite(self, token: str) -> Optional[Invite]:
        """Look up an invite by its normalized token."""
        pass

    @abstractmethod
    async def record_use(self, invite: Invite) -> Invite:
        """
        Count one redemption of an invite.

        Implementations should only apply the increment if the stored
        use count still matches `invite.uses`.

        Returns:
            The invite with its updated use count

        Raises:
            NotFoundError: If the invite disappeared
            ConflictError: If the stored use count moved underneath us
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one refresh of the dashboard).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConflictError(StorageError):
    """A conditional update lost a race with another writer."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class ConfigurationError(StorageError):
    """Storage is missing settings it needs; retrying won't help."""
    pass


class HomeNotConfiguredError(StorageError):
    """No home spreadsheet is known yet."""

    def __init__(self, message: str = "No home found. Create or join a home first."):
        super().__init__(message)


class ManagerNotSetError(StorageError):
    """The home has no manager name, so balances have nothing to be relative to."""

    def __init__(self, message: str = "No manager name set. Create a home first."):
        super().__init__(message)
