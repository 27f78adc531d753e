"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the system of record because:
1. The house manager can read and fix the ledger directly in Sheets
2. No database setup required
3. Every roommate already has a Google account
4. Easy to export/migrate later

TRADEOFFS:
- No transactions (invite redemption uses a compare-then-write on the
  use counter, which is good enough for a handful of roommates)
- Limited query capabilities (we read whole columns and work in Python)
- Cells are free text, so reads must tolerate junk

Layout of a home spreadsheet:
    Bills      Date | PaidBy | Description | Amount | SplitWith
    Payments   Date | PaidBy | Amount | Note
    Summary    Name | Amount Owed ($)
    Home       ManagerName | <name>
    Roommates  Name
    AuditLog   (see AUDIT_COLUMNS)

Invites live in a separate, shared registry spreadsheet.
"""

import asyncio
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from billmate.balances.presentation import summary_rows
from billmate.config import GoogleSheetsSettings, get_settings
from billmate.models.audit import AuditEvent
from billmate.models.invite import INVITE_COLUMNS, Invite, normalize_token
from billmate.models.ledger import (
    BILL_COLUMNS,
    PAYMENT_COLUMNS,
    ROOMMATE_COLUMNS,
    SUMMARY_COLUMNS,
    BillRecord,
    PaymentRecord,
    RoommateBalance,
)
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


SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]

HOME_HEADER = ["ManagerName"]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_key",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# 1-based column of the use counter on the Invites sheet
INVITE_USES_COLUMN = INVITE_COLUMNS.index("uses") + 1


def _is_transient(error: BaseException) -> bool:
    """Only plain backend failures are worth retrying."""
    return isinstance(error, StorageError) and not isinstance(
        error,
        (
            ConfigurationError,
            HomeNotConfiguredError,
            ManagerNotSetError,
            NotFoundError,
            DuplicateError,
            ConflictError,
        ),
    )


sheets_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception(_is_transient),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication, knows which spreadsheet is open, and hands out
    worksheets (creating missing ones with their header row).
    """

    def __init__(
        self,
        spreadsheet_id: Optional[str] = None,
        settings: Optional[GoogleSheetsSettings] = None,
    ):
        self._settings = settings or get_settings().google_sheets
        self._spreadsheet_id = spreadsheet_id or self._settings.spreadsheet_id
        self._credentials: Optional[Credentials] = None
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @property
    def spreadsheet_id(self) -> Optional[str]:
        return self._spreadsheet_id

    @sheets_retry
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                self._credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=SCOPES,
                )
                self._client = gspread.authorize(self._credentials)
            except FileNotFoundError:
                raise ConfigurationError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    @property
    def identity(self) -> str:
        """Who we act as - used to stamp invites."""
        self.connect()
        return getattr(self._credentials, "service_account_email", None) or "unknown"

    def open(self, spreadsheet_id: str) -> None:
        """Switch to another spreadsheet."""
        self._spreadsheet_id = spreadsheet_id
        self._spreadsheet = None

    def close(self) -> None:
        """Forget the open spreadsheet; the connection itself is kept."""
        self._spreadsheet_id = None
        self._spreadsheet = None

    def create_spreadsheet(self, title: str) -> str:
        """
        Create a new home spreadsheet with all of its tabs and open it.

        Returns the new spreadsheet ID.
        """
        client = self.connect()
        try:
            spreadsheet = client.create(title)
            layout = self.home_layout()
            first_title, _ = layout[0]
            spreadsheet.sheet1.update_title(first_title)
            for sheet_title, columns in layout[1:]:
                spreadsheet.add_worksheet(
                    title=sheet_title,
                    rows=1000,
                    cols=max(len(columns), 2),
                )
        except Exception as e:
            raise StorageError(f"Failed to create spreadsheet: {e}")

        self._spreadsheet_id = spreadsheet.id
        self._spreadsheet = spreadsheet
        return spreadsheet.id

    def home_layout(self) -> list[tuple[str, list[str]]]:
        """Tabs of a home spreadsheet, in creation order, with their headers."""
        s = self._settings
        return [
            (s.bills_sheet_name, BILL_COLUMNS),
            (s.payments_sheet_name, PAYMENT_COLUMNS),
            (s.summary_sheet_name, SUMMARY_COLUMNS),
            (s.home_sheet_name, HOME_HEADER),
            (s.roommates_sheet_name, ROOMMATE_COLUMNS),
        ]

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the open spreadsheet."""
        if not self._spreadsheet_id:
            raise HomeNotConfiguredError()
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(
        self,
        title: str,
        columns: Optional[list[str]] = None,
        rows: int = 1000,
    ) -> gspread.Worksheet:
        """Get or create a worksheet; new ones get `columns` as their header."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=max(len(columns or []), 2),
            )
            if columns:
                sheet.append_row(columns)
        return sheet

    def get_bills_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.bills_sheet_name, BILL_COLUMNS)

    def get_payments_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.payments_sheet_name, PAYMENT_COLUMNS)

    def get_summary_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.summary_sheet_name, SUMMARY_COLUMNS)

    def get_home_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.home_sheet_name)

    def get_roommates_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.roommates_sheet_name, ROOMMATE_COLUMNS)

    def get_invites_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.invites_sheet_name, INVITE_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of the ledger.

    One bill or payment per row, columns mapped by position.
    Rows are appended RAW so what the user typed is what gets stored.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def _read_rows(self, sheet: gspread.Worksheet) -> list[list]:
        # gspread is blocking; keep the event loop free for the other fetch
        values = await asyncio.to_thread(sheet.get_all_values)
        return values[1:]  # Skip header

    @sheets_retry
    async def fetch_bills(self) -> list[BillRecord]:
        """Fetch all bills, newest first."""
        try:
            rows = await self._read_rows(self._client.get_bills_sheet())
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to fetch bills: {e}")

        bills = [
            bill for bill in (BillRecord.from_sheets_row(row) for row in rows)
            if bill is not None
        ]
        bills.sort(key=lambda b: b.date, reverse=True)
        return bills

    @sheets_retry
    async def fetch_payments(self) -> list[PaymentRecord]:
        """Fetch all payments, newest first."""
        try:
            rows = await self._read_rows(self._client.get_payments_sheet())
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to fetch payments: {e}")

        payments = [
            payment for payment in (PaymentRecord.from_sheets_row(row) for row in rows)
            if payment is not None
        ]
        payments.sort(key=lambda p: p.date, reverse=True)
        return payments

    @sheets_retry
    async def append_bill(self, bill: BillRecord) -> bool:
        """Append a bill row."""
        try:
            sheet = self._client.get_bills_sheet()
            sheet.append_row(bill.to_sheets_row(), value_input_option="RAW")
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save bill: {e}")

    @sheets_retry
    async def append_payment(self, payment: PaymentRecord) -> bool:
        """Append a payment row."""
        try:
            sheet = self._client.get_payments_sheet()
            sheet.append_row(payment.to_sheets_row(), value_input_option="RAW")
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save payment: {e}")


class GoogleSheetsHomeStorage(HomeStorageInterface):
    """
    Google Sheets implementation of home setup and roommates.

    The manager's name lives in Home!B1; roommates in Roommates column A.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        spreadsheet_title: Optional[str] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._title = spreadsheet_title or get_settings().app.spreadsheet_title

    async def ensure_spreadsheet(self) -> str:
        if self._client.spreadsheet_id:
            return self._client.spreadsheet_id
        return self._client.create_spreadsheet(self._title)

    async def open_home(self, spreadsheet_id: str) -> None:
        self._client.open(spreadsheet_id)

    async def close_home(self) -> None:
        self._client.close()

    @sheets_retry
    async def initialize_home(self, manager_name: str) -> None:
        clean = manager_name.strip()
        if not clean:
            raise ManagerNotSetError("Manager name cannot be empty.")

        try:
            self._client.get_bills_sheet().update(values=[BILL_COLUMNS], range_name="A1")
            self._client.get_payments_sheet().update(values=[PAYMENT_COLUMNS], range_name="A1")
            self._client.get_summary_sheet().update(values=[SUMMARY_COLUMNS], range_name="A1")
            self._client.get_home_sheet().update(
                values=[HOME_HEADER + [clean]],
                range_name="A1:B1",
            )

            roommates = self._client.get_roommates_sheet()
            roommates.update(values=[ROOMMATE_COLUMNS], range_name="A1")
            existing = {name.strip().casefold() for name in roommates.col_values(1)[1:]}
            # Safe to repeat: the manager is only listed once
            if clean.casefold() not in existing:
                roommates.append_row([clean], value_input_option="RAW")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to initialize home: {e}")

    async def fetch_manager_name(self) -> str:
        try:
            value = self._client.get_home_sheet().acell("B1").value
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read manager name: {e}")

        manager = (value or "").strip()
        if not manager:
            raise ManagerNotSetError(
                f"Home sheet has no manager name ({self._client.settings.home_sheet_name}!B1)."
            )
        return manager

    async def fetch_roommates(self) -> list[str]:
        try:
            column = self._client.get_roommates_sheet().col_values(1)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read roommates: {e}")

        seen = set()
        names = []
        for cell in column[1:]:  # Skip header
            name = str(cell).strip()
            if not name or name.casefold() in seen:
                continue
            seen.add(name.casefold())
            names.append(name)
        return names

    @sheets_retry
    async def add_roommate(self, name: str) -> bool:
        try:
            sheet = self._client.get_roommates_sheet()
            sheet.append_row([name.strip()], value_input_option="RAW")
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to add roommate: {e}")

    @sheets_retry
    async def store_summary(self, balances: list[RoommateBalance]) -> bool:
        try:
            sheet = self._client.get_summary_sheet()
            sheet.clear()
            sheet.update(values=summary_rows(balances), range_name="A1")
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to store summary: {e}")


class GoogleSheetsInviteStorage(InviteStorageInterface):
    """
    Google Sheets implementation of the invite registry.

    Uses its own client pointed at the shared registry spreadsheet,
    one invite per row keyed by token.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        if client is None:
            settings = get_settings().google_sheets
            client = GoogleSheetsClient(
                spreadsheet_id=settings.invites_spreadsheet_id,
                settings=settings,
            )
        self._client = client

    def _sheet(self) -> gspread.Worksheet:
        if not self._client.spreadsheet_id:
            raise ConfigurationError(
                "Invite registry is not configured (GOOGLE_SHEETS_INVITES_SPREADSHEET_ID)."
            )
        return self._client.get_invites_sheet()

    @staticmethod
    def _find(all_rows: list[list], token: str) -> tuple[Optional[int], Optional[list]]:
        """Locate a token; returns its 1-based sheet row and the row itself."""
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
            if row and row[0].strip().upper() == token:
                return idx, row
        return None, None

    @sheets_retry
    async def save_invite(self, invite: Invite) -> bool:
        try:
            sheet = self._sheet()
            row_idx, _ = self._find(sheet.get_all_values(), invite.token)
            if row_idx is not None:
                raise DuplicateError(f"Invite token already exists: {invite.token}")
            sheet.append_row(invite.to_sheets_row(), value_input_option="RAW")
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save invite: {e}")

    async def get_invite(self, token: str) -> Optional[Invite]:
        token = normalize_token(token)
        try:
            _, row = self._find(self._sheet().get_all_values(), token)
            return Invite.from_sheets_row(row) if row is not None else None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read invite: {e}")

    async def record_use(self, invite: Invite) -> Invite:
        try:
            sheet = self._sheet()
            row_idx, row = self._find(sheet.get_all_values(), invite.token)
            if row_idx is None:
                raise NotFoundError(f"Invite not found: {invite.token}")

            stored = Invite.from_sheets_row(row)
            if stored.uses != invite.uses:
                raise ConflictError(f"Invite {invite.token} was used concurrently")

            uses = stored.uses + 1
            sheet.update_cell(row_idx, INVITE_USES_COLUMN, str(uses))
            return stored.model_copy(update={"uses": uses})
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to record invite use: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # AuditLogger decides how loud to be about this
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and len(row) > 6 and row[6] == str(correlation_id):
                try:
                    events.append(AuditEvent.from_sheets_row(row))
                except ValueError:
                    continue  # Skip malformed rows

        # Sort chronologically
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(AuditEvent.from_sheets_row(row))
                except ValueError:
                    continue

        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
