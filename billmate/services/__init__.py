"""Services package."""

from billmate.services.invites import (
    EmptyTokenError,
    InviteError,
    InviteExhaustedError,
    InviteExpiredError,
    InviteInactiveError,
    InviteInvalidError,
    InviteNotFoundError,
    InviteService,
)
from billmate.services.storage import (
    AuditStorageInterface,
    ConfigurationError,
    ConflictError,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsHomeStorage,
    GoogleSheetsInviteStorage,
    GoogleSheetsLedgerStorage,
    HomeNotConfiguredError,
    HomeStorageInterface,
    InMemoryAuditStorage,
    InMemoryHomeStorage,
    InMemoryInviteStorage,
    InMemoryLedgerStorage,
    InviteStorageInterface,
    LedgerStorageInterface,
    ManagerNotSetError,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Invite services
    "EmptyTokenError",
    "InviteError",
    "InviteExhaustedError",
    "InviteExpiredError",
    "InviteInactiveError",
    "InviteInvalidError",
    "InviteNotFoundError",
    "InviteService",
    # Storage services
    "AuditStorageInterface",
    "ConfigurationError",
    "ConflictError",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsHomeStorage",
    "GoogleSheetsInviteStorage",
    "GoogleSheetsLedgerStorage",
    "HomeNotConfiguredError",
    "HomeStorageInterface",
    "InMemoryAuditStorage",
    "InMemoryHomeStorage",
    "InMemoryInviteStorage",
    "InMemoryLedgerStorage",
    "InviteStorageInterface",
    "LedgerStorageInterface",
    "ManagerNotSetError",
    "NotFoundError",
    "StorageError",
]
