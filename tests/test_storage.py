"""
Tests for storage implementations.

Google Sheets classes run against MagicMock worksheets; nothing here
talks to the real API.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch
from uuid import uuid4

import gspread
import pytest

from billmate.config import GoogleSheetsSettings
from billmate.models import (
    BILL_COLUMNS,
    INVITE_COLUMNS,
    PAYMENT_COLUMNS,
    AuditEventBuilder,
    BillRecord,
    Invite,
    PaymentRecord,
    RoommateBalance,
)
from billmate.services.storage import (
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
    InMemoryAuditStorage,
    InMemoryHomeStorage,
    InMemoryInviteStorage,
    InMemoryLedgerStorage,
    ManagerNotSetError,
    NotFoundError,
    StorageError,
)
from billmate.services.storage.google_sheets import _is_transient


NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_invite(token: str = "ABCD-EFGH", uses: int = 0) -> Invite:
    invite = Invite.issue(token, "sheet-1", "kyle", ttl_hours=72, max_uses=5, now=NOW)
    return invite.model_copy(update={"uses": uses})


@pytest.fixture
def sheets_settings(tmp_path):
    credentials = tmp_path / "credentials.json"
    credentials.write_text("{}")
    return GoogleSheetsSettings(credentials_path=str(credentials))


@pytest.fixture
def client():
    """A stand-in GoogleSheetsClient handing out mock worksheets."""
    return MagicMock(spec=GoogleSheetsClient)


class TestGoogleSheetsClient:
    """Tests for spreadsheet and worksheet handling."""

    def test_no_spreadsheet_means_no_home(self, sheets_settings):
        """Test that worksheet access without a spreadsheet ID fails clearly."""
        sheets = GoogleSheetsClient(settings=sheets_settings)

        with pytest.raises(HomeNotConfiguredError):
            sheets.get_bills_sheet()

    def test_missing_worksheet_is_created_with_header(self, sheets_settings):
        """Test that an absent tab is added and given its header row."""
        spreadsheet = MagicMock()
        spreadsheet.worksheet.side_effect = gspread.WorksheetNotFound("Bills")
        new_sheet = MagicMock()
        spreadsheet.add_worksheet.return_value = new_sheet
        gc = MagicMock()
        gc.open_by_key.return_value = spreadsheet

        sheets = GoogleSheetsClient(spreadsheet_id="sheet-1", settings=sheets_settings)
        with patch.object(GoogleSheetsClient, "connect", return_value=gc):
            sheet = sheets.get_bills_sheet()

        assert sheet is new_sheet
        gc.open_by_key.assert_called_once_with("sheet-1")
        new_sheet.append_row.assert_called_once_with(BILL_COLUMNS)

    def test_open_switches_spreadsheet(self, sheets_settings):
        """Test that open() points the client at another home."""
        sheets = GoogleSheetsClient(spreadsheet_id="sheet-1", settings=sheets_settings)
        sheets.open("sheet-2")

        assert sheets.spreadsheet_id == "sheet-2"

    def test_close_forgets_spreadsheet(self, sheets_settings):
        """Test that a closed client has no home until one is opened or created."""
        sheets = GoogleSheetsClient(spreadsheet_id="sheet-1", settings=sheets_settings)
        sheets.close()

        assert sheets.spreadsheet_id is None
        with pytest.raises(HomeNotConfiguredError):
            sheets.get_bills_sheet()

    def test_missing_credentials_fail_without_retry(self, sheets_settings):
        """Test that a missing key file is reported once, not retried."""
        sheets = GoogleSheetsClient(spreadsheet_id="sheet-1", settings=sheets_settings)
        target = "billmate.services.storage.google_sheets.Credentials.from_service_account_file"

        with patch(target, side_effect=FileNotFoundError) as load:
            with pytest.raises(ConfigurationError, match="credentials file not found"):
                sheets.connect()

        assert load.call_count == 1

    def test_only_backend_failures_are_retried(self):
        """Test which storage errors count as transient."""
        assert _is_transient(ConnectionError("timeout"))
        assert _is_transient(StorageError("quota"))
        assert not _is_transient(ConfigurationError("no registry"))
        assert not _is_transient(HomeNotConfiguredError())
        assert not _is_transient(ValueError("bug"))

    def test_create_spreadsheet_lays_out_tabs(self, sheets_settings):
        """Test that a new home gets every tab."""
        spreadsheet = MagicMock()
        spreadsheet.id = "new-sheet"
        gc = MagicMock()
        gc.create.return_value = spreadsheet

        sheets = GoogleSheetsClient(settings=sheets_settings)
        with patch.object(GoogleSheetsClient, "connect", return_value=gc):
            spreadsheet_id = sheets.create_spreadsheet("Bill Mate")

        assert spreadsheet_id == "new-sheet"
        assert sheets.spreadsheet_id == "new-sheet"
        spreadsheet.sheet1.update_title.assert_called_once_with("Bills")
        added = [c.kwargs["title"] for c in spreadsheet.add_worksheet.call_args_list]
        assert added == ["Payments", "Summary", "Home", "Roommates"]


class TestGoogleSheetsLedgerStorage:
    """Tests for reading and appending ledger rows."""

    def test_fetch_bills_skips_header_and_short_rows(self, client):
        """Test that the header and malformed rows are dropped."""
        sheet = MagicMock()
        sheet.get_all_values.return_value = [
            BILL_COLUMNS,
            ["2024-01-01", "Kyle", "Rent", "900", "Kyle, Alex"],
            ["2024-01-03"],
            ["2024-01-05", "Alex", "Internet", "oops", "Alex, Sam"],
        ]
        client.get_bills_sheet.return_value = sheet

        bills = asyncio.run(GoogleSheetsLedgerStorage(client).fetch_bills())

        assert [b.date for b in bills] == ["2024-01-05", "2024-01-01"]
        assert bills[0].amount == 0.0
        assert bills[1].amount == 900.0

    def test_fetch_payments_newest_first(self, client):
        """Test date-descending order for payments."""
        sheet = MagicMock()
        sheet.get_all_values.return_value = [
            PAYMENT_COLUMNS,
            ["2024-01-02", "Alex", "10"],
            ["2024-02-01", "Sam", "20", "cash"],
        ]
        client.get_payments_sheet.return_value = sheet

        payments = asyncio.run(GoogleSheetsLedgerStorage(client).fetch_payments())

        assert [p.paid_by for p in payments] == ["Sam", "Alex"]
        assert payments[0].note == "cash"

    def test_fetch_bills_empty_sheet(self, client):
        """Test a sheet holding only its header."""
        sheet = MagicMock()
        sheet.get_all_values.return_value = [BILL_COLUMNS]
        client.get_bills_sheet.return_value = sheet

        assert asyncio.run(GoogleSheetsLedgerStorage(client).fetch_bills()) == []

    def test_fetch_without_home_is_not_retried(self, client):
        """Test that a missing home surfaces immediately."""
        client.get_bills_sheet.side_effect = HomeNotConfiguredError()

        with pytest.raises(HomeNotConfiguredError):
            asyncio.run(GoogleSheetsLedgerStorage(client).fetch_bills())
        assert client.get_bills_sheet.call_count == 1

    def test_append_bill_is_raw(self, client):
        """Test that bills are appended as typed."""
        sheet = MagicMock()
        client.get_bills_sheet.return_value = sheet
        bill = BillRecord(date="2024-01-01", paid_by="Kyle", description="Rent", amount=900.0, split_with="Kyle, Alex")

        assert asyncio.run(GoogleSheetsLedgerStorage(client).append_bill(bill)) is True
        sheet.append_row.assert_called_once_with(
            ["2024-01-01", "Kyle", "Rent", "900", "Kyle, Alex"],
            value_input_option="RAW",
        )

    def test_append_payment(self, client):
        """Test appending a payment row."""
        sheet = MagicMock()
        client.get_payments_sheet.return_value = sheet
        payment = PaymentRecord(date="2024-01-02", paid_by="Alex", amount=33.34)

        asyncio.run(GoogleSheetsLedgerStorage(client).append_payment(payment))

        sheet.append_row.assert_called_once_with(
            ["2024-01-02", "Alex", "33.34", ""],
            value_input_option="RAW",
        )


class TestGoogleSheetsHomeStorage:
    """Tests for home setup, manager and roommates."""

    def test_ensure_spreadsheet_uses_open_home(self, client):
        """Test that an existing spreadsheet is reused."""
        client.spreadsheet_id = "sheet-1"

        storage = GoogleSheetsHomeStorage(client, spreadsheet_title="Bill Mate")

        assert asyncio.run(storage.ensure_spreadsheet()) == "sheet-1"
        client.create_spreadsheet.assert_not_called()

    def test_ensure_spreadsheet_creates_one(self, client):
        """Test that a spreadsheet is created when none is open."""
        client.spreadsheet_id = None
        client.create_spreadsheet.return_value = "new-sheet"

        storage = GoogleSheetsHomeStorage(client, spreadsheet_title="Our Flat")

        assert asyncio.run(storage.ensure_spreadsheet()) == "new-sheet"
        client.create_spreadsheet.assert_called_once_with("Our Flat")

    def test_close_home_detaches_client(self, client):
        """Test that closing the home closes the shared client."""
        asyncio.run(GoogleSheetsHomeStorage(client, "Bill Mate").close_home())

        client.close.assert_called_once_with()

    def test_initialize_home_records_manager(self, client):
        """Test headers, manager cell and roommate entry."""
        home = MagicMock()
        roommates = MagicMock()
        roommates.col_values.return_value = ["Name", "Alex"]
        client.get_home_sheet.return_value = home
        client.get_roommates_sheet.return_value = roommates

        asyncio.run(GoogleSheetsHomeStorage(client, "Bill Mate").initialize_home("  Kyle "))

        home.update.assert_called_once_with(values=[["ManagerName", "Kyle"]], range_name="A1:B1")
        roommates.append_row.assert_called_once_with(["Kyle"], value_input_option="RAW")
        client.get_bills_sheet.return_value.update.assert_called_once_with(
            values=[BILL_COLUMNS], range_name="A1"
        )

    def test_initialize_home_twice_lists_manager_once(self, client):
        """Test that re-running setup doesn't duplicate the manager."""
        roommates = MagicMock()
        roommates.col_values.return_value = ["Name", "kyle"]
        client.get_roommates_sheet.return_value = roommates

        asyncio.run(GoogleSheetsHomeStorage(client, "Bill Mate").initialize_home("Kyle"))

        roommates.append_row.assert_not_called()

    def test_initialize_home_requires_name(self, client):
        """Test that a blank manager is refused."""
        with pytest.raises(ManagerNotSetError):
            asyncio.run(GoogleSheetsHomeStorage(client, "Bill Mate").initialize_home("  "))

    def test_fetch_manager_name(self, client):
        """Test reading Home!B1."""
        home = MagicMock()
        home.acell.return_value.value = " Kyle "
        client.get_home_sheet.return_value = home

        assert asyncio.run(GoogleSheetsHomeStorage(client, "Bill Mate").fetch_manager_name()) == "Kyle"
        home.acell.assert_called_once_with("B1")

    def test_fetch_manager_name_blank(self, client):
        """Test that an empty cell is reported as no manager."""
        home = MagicMock()
        home.acell.return_value.value = None
        client.get_home_sheet.return_value = home

        with pytest.raises(ManagerNotSetError):
            asyncio.run(GoogleSheetsHomeStorage(client, "Bill Mate").fetch_manager_name())

    def test_fetch_manager_name_wraps_api_errors(self, client):
        """Test that gspread failures become StorageError."""
        client.get_home_sheet.side_effect = RuntimeError("quota")

        with pytest.raises(StorageError, match="quota"):
            asyncio.run(GoogleSheetsHomeStorage(client, "Bill Mate").fetch_manager_name())

    def test_fetch_roommates_dedupes(self, client):
        """Test trimming, blank removal and case-insensitive de-duplication."""
        roommates = MagicMock()
        roommates.col_values.return_value = ["Name", "Kyle", " Alex ", "", "alex", "Sam"]
        client.get_roommates_sheet.return_value = roommates

        names = asyncio.run(GoogleSheetsHomeStorage(client, "Bill Mate").fetch_roommates())

        assert names == ["Kyle", "Alex", "Sam"]

    def test_store_summary_rewrites_sheet(self, client):
        """Test that the summary is cleared and rewritten."""
        summary = MagicMock()
        client.get_summary_sheet.return_value = summary

        asyncio.run(GoogleSheetsHomeStorage(client, "Bill Mate").store_summary([
            RoommateBalance(name="Sam", amount_owed=100 / 3),
        ]))

        summary.clear.assert_called_once()
        summary.update.assert_called_once_with(
            values=[["Name", "Amount Owed ($)"], ["Sam", 33.33]],
            range_name="A1",
        )


class TestGoogleSheetsInviteStorage:
    """Tests for the invite registry."""

    def _sheet(self, client, rows):
        sheet = MagicMock()
        sheet.get_all_values.return_value = [INVITE_COLUMNS] + rows
        client.spreadsheet_id = "registry"
        client.get_invites_sheet.return_value = sheet
        return sheet

    def test_unconfigured_registry(self, client):
        """Test that a missing registry ID is a configuration problem."""
        client.spreadsheet_id = None

        with pytest.raises(ConfigurationError, match="not configured"):
            asyncio.run(GoogleSheetsInviteStorage(client).get_invite("ABCD-EFGH"))

        client.get_invites_sheet.assert_not_called()

    def test_get_invite_normalizes_token(self, client):
        """Test lookup ignoring case and whitespace."""
        invite = make_invite()
        self._sheet(client, [invite.to_sheets_row()])

        found = asyncio.run(GoogleSheetsInviteStorage(client).get_invite(" abcd-efgh "))

        assert found == invite

    def test_get_invite_missing(self, client):
        """Test that unknown tokens return None."""
        self._sheet(client, [])

        assert asyncio.run(GoogleSheetsInviteStorage(client).get_invite("ZZZZ-ZZZZ")) is None

    def test_save_invite_rejects_duplicate(self, client):
        """Test that an existing token is not overwritten."""
        invite = make_invite()
        sheet = self._sheet(client, [invite.to_sheets_row()])

        with pytest.raises(DuplicateError):
            asyncio.run(GoogleSheetsInviteStorage(client).save_invite(invite))
        sheet.append_row.assert_not_called()

    def test_record_use_updates_counter(self, client):
        """Test that the uses cell is bumped in place."""
        invite = make_invite(uses=1)
        sheet = self._sheet(client, [make_invite("ZZZZ-ZZZZ").to_sheets_row(), invite.to_sheets_row()])

        updated = asyncio.run(GoogleSheetsInviteStorage(client).record_use(invite))

        assert updated.uses == 2
        sheet.update_cell.assert_called_once_with(3, INVITE_COLUMNS.index("uses") + 1, "2")

    def test_record_use_detects_conflict(self, client):
        """Test that a stale use count is refused."""
        stored = make_invite(uses=2)
        sheet = self._sheet(client, [stored.to_sheets_row()])

        with pytest.raises(ConflictError):
            asyncio.run(GoogleSheetsInviteStorage(client).record_use(make_invite(uses=1)))
        sheet.update_cell.assert_not_called()

    def test_record_use_missing_invite(self, client):
        """Test that a vanished invite is reported."""
        self._sheet(client, [])

        with pytest.raises(NotFoundError):
            asyncio.run(GoogleSheetsInviteStorage(client).record_use(make_invite()))


class TestGoogleSheetsAuditStorage:
    """Tests for audit log persistence."""

    def test_append_event(self, client):
        """Test that events are appended as rows."""
        sheet = MagicMock()
        client.get_audit_sheet.return_value = sheet
        event = AuditEventBuilder.roommate_added("Alex", uuid4())

        assert asyncio.run(GoogleSheetsAuditStorage(client).append_event(event)) is True
        sheet.append_row.assert_called_once_with(event.to_sheets_row(), value_input_option="RAW")

    def test_append_event_failure(self, client):
        """Test that write failures become StorageError."""
        client.get_audit_sheet.side_effect = RuntimeError("offline")

        with pytest.raises(StorageError):
            asyncio.run(GoogleSheetsAuditStorage(client).append_event(
                AuditEventBuilder.roommate_added("Alex", uuid4())
            ))

    def test_events_by_correlation_id_skip_malformed(self, client):
        """Test filtering by correlation and skipping broken rows."""
        correlation_id = uuid4()
        first = AuditEventBuilder.bill_added("Kyle", 10.0, "Alex", correlation_id)
        other = AuditEventBuilder.bill_added("Kyle", 20.0, "Alex", uuid4())
        broken = ["not-a-uuid", "", "", "", "", "", str(correlation_id)]
        sheet = MagicMock()
        sheet.get_all_values.return_value = [
            ["header"], first.to_sheets_row(), other.to_sheets_row(), broken,
        ]
        client.get_audit_sheet.return_value = sheet

        events = asyncio.run(
            GoogleSheetsAuditStorage(client).get_events_by_correlation_id(correlation_id)
        )

        assert [e.event_id for e in events] == [first.event_id]


class TestInMemoryStorage:
    """Tests for the in-memory backends."""

    def test_ledger_roundtrip(self):
        """Test append then fetch, newest first."""
        storage = InMemoryLedgerStorage()
        asyncio.run(storage.append_bill(BillRecord(date="2024-01-01", amount=10.0)))
        asyncio.run(storage.append_bill(BillRecord(date="2024-02-01", amount=20.0)))

        bills = asyncio.run(storage.fetch_bills())

        assert [b.amount for b in bills] == [20.0, 10.0]

    def test_home_requires_spreadsheet(self):
        """Test that home operations need a home."""
        with pytest.raises(HomeNotConfiguredError):
            asyncio.run(InMemoryHomeStorage().fetch_roommates())

    def test_home_setup(self):
        """Test creating a home and recording the manager."""
        storage = InMemoryHomeStorage(roommates=["kyle"])

        spreadsheet_id = asyncio.run(storage.ensure_spreadsheet())
        asyncio.run(storage.initialize_home("Kyle"))

        assert spreadsheet_id.startswith("local-")
        assert asyncio.run(storage.fetch_manager_name()) == "Kyle"
        assert asyncio.run(storage.fetch_roommates()) == ["kyle"]

    def test_close_home(self):
        """Test that a closed home starts over on the next ensure_spreadsheet."""
        storage = InMemoryHomeStorage(
            spreadsheet_id="sheet-1", manager_name="Kyle", roommates=["Kyle", "Alex"]
        )

        asyncio.run(storage.close_home())

        assert storage.manager_name is None
        assert storage.roommates == []
        with pytest.raises(HomeNotConfiguredError):
            asyncio.run(storage.fetch_roommates())
        assert asyncio.run(storage.ensure_spreadsheet()) != "sheet-1"

    def test_manager_not_set(self):
        """Test a home without a manager."""
        storage = InMemoryHomeStorage(spreadsheet_id="sheet-1")

        with pytest.raises(ManagerNotSetError):
            asyncio.run(storage.fetch_manager_name())

    def test_invite_conditional_increment(self):
        """Test that only the first of two racing redemptions counts."""
        storage = InMemoryInviteStorage()
        invite = make_invite()
        asyncio.run(storage.save_invite(invite))

        asyncio.run(storage.record_use(invite))
        with pytest.raises(ConflictError):
            asyncio.run(storage.record_use(invite))

        assert asyncio.run(storage.get_invite("abcd-efgh")).uses == 1

    def test_invite_duplicate(self):
        """Test that tokens are unique."""
        storage = InMemoryInviteStorage()
        asyncio.run(storage.save_invite(make_invite()))

        with pytest.raises(DuplicateError):
            asyncio.run(storage.save_invite(make_invite()))

    def test_audit_recent_events(self):
        """Test newest-first ordering with a limit."""
        storage = InMemoryAuditStorage()
        base = AuditEventBuilder.roommate_added("Alex", uuid4())
        for minutes in range(3):
            asyncio.run(storage.append_event(
                base.model_copy(update={"event_id": uuid4(), "timestamp": NOW + timedelta(minutes=minutes)})
            ))

        recent = asyncio.run(storage.get_recent_events(limit=2))

        assert [e.timestamp for e in recent] == [NOW + timedelta(minutes=2), NOW + timedelta(minutes=1)]
