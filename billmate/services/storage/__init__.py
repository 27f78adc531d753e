"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the real backend; the in-memory backend stands in for it
in tests and when Sheets isn't configured.
"""

from billmate.services.storage.interface import (
    AuditStorageInterface,
    ConfigurationError,
    ConflictError,
    ConnectionError,
    DuplicateError,
    HomeNotConfiguredError,
    HomeStorageInterface,
    InviteStorageInterface,
    LedgerStorageInterface,
    ManagerNotSetError,
    NotFoundError,
    StorageError,
)
from billmate.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsHomeStorage,
    GoogleSheetsInviteStorage,
    GoogleSheetsLedgerStorage,
)
from billmate.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryHomeStorage,
    InMemoryInviteStorage,
    InMemoryLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "HomeStorageInterface",
    "InviteStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "ConfigurationError",
    "ConflictError",
    "ConnectionError",
    "DuplicateError",
    "HomeNotConfiguredError",
    "ManagerNotSetError",
    "NotFoundError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsHomeStorage",
    "GoogleSheetsInviteStorage",
    "GoogleSheetsLedgerStorage",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryHomeStorage",
    "InMemoryInviteStorage",
    "InMemoryLedgerStorage",
]
