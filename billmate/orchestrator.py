"""
Main Orchestrator for Bill Mate

This module ties the components together and defines the end-to-end
flows for:
1. Ledger entry (form -> validate -> append -> audit)
2. Balances (resolve manager -> fetch bills + payments -> engine -> summary)
3. Home lifecycle (create, join by invite, roommates, leave)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is appended unless validation passes
- The engine only ever sees freshly fetched snapshots
- Every write is audited

The balance engine itself stays pure; all I/O happens here.
"""

import asyncio
from typing import Optional
from uuid import UUID

import structlog

from billmate.audit import AuditLogger, create_correlation_id
from billmate.balances import compute_balances, normalize_name
from billmate.config import get_settings
from billmate.models import (
    BillRecord,
    Invite,
    PaymentRecord,
    Roommate,
    RoommateBalance,
    ValidationResult,
    normalize_token,
    split_names,
)
from billmate.services.invites import InviteError, InviteService
from billmate.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsHomeStorage,
    GoogleSheetsInviteStorage,
    GoogleSheetsLedgerStorage,
    HomeNotConfiguredError,
    HomeStorageInterface,
    InMemoryHomeStorage,
    InMemoryInviteStorage,
    InMemoryLedgerStorage,
    InviteStorageInterface,
    LedgerStorageInterface,
    ManagerNotSetError,
    StorageError,
)
from billmate.session import HomeState, LocalStateStore
from billmate.validation import EntryValidator, format_entry_date, parse_entry_amount


logger = structlog.get_logger("billmate.orchestrator")


def _issue_dicts(result: ValidationResult) -> list[dict]:
    return [
        {"field": i.field, "type": i.issue_type, "message": i.message}
        for i in result.issues
    ]


class LedgerFlow:
    """
    Orchestrates adding and listing ledger entries.

    Flow:
    1. Validate the form input
    2. If there are errors, stop and report them (nothing is written)
    3. Append the row
    4. Audit
    """

    def __init__(
        self,
        ledger_storage: LedgerStorageInterface,
        validator: Optional[EntryValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._ledger_storage = ledger_storage
        self._validator = validator or EntryValidator()
        self._audit_logger = audit_logger

    async def _reject(
        self,
        entity_type: str,
        result: ValidationResult,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_entry_rejected(
                entity_type=entity_type,
                issues=_issue_dicts(result),
                correlation_id=correlation_id,
            )

    async def _report_storage_error(self, error: StorageError, correlation_id: UUID) -> None:
        if self._audit_logger:
            await self._audit_logger.log_external_service_error(
                service="google_sheets",
                error_message=str(error),
                correlation_id=correlation_id,
            )

    async def _report_unexpected_error(
        self,
        error: Exception,
        operation: str,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_error(
                error_type=type(error).__name__,
                error_message=str(error),
                details={"operation": operation},
                correlation_id=correlation_id,
            )

    async def add_bill(
        self,
        entry_date,
        paid_by: str,
        description: str,
        amount: str,
        split_with: str,
        manager_name: Optional[str] = None,
        roommates: Optional[list[str]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Optional[BillRecord], ValidationResult]:
        """
        Validate and append a bill.

        Returns:
            (bill, validation_result) - bill is None when validation failed
        """
        correlation_id = correlation_id or create_correlation_id()

        result = self._validator.validate_bill(
            entry_date=entry_date,
            paid_by=paid_by,
            amount=amount,
            split_with=split_with,
            manager_name=manager_name,
            roommates=roommates,
        )
        if result.has_errors:
            await self._reject("bill", result, correlation_id)
            return None, result

        bill = BillRecord(
            date=format_entry_date(entry_date),
            paid_by=paid_by.strip(),
            description=description.strip(),
            amount=parse_entry_amount(amount),
            split_with=", ".join(split_names(split_with)),
        )

        try:
            await self._ledger_storage.append_bill(bill)
        except StorageError as e:
            await self._report_storage_error(e, correlation_id)
            raise
        except Exception as e:
            await self._report_unexpected_error(e, "append_bill", correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_bill_added(
                paid_by=bill.paid_by,
                amount=bill.amount,
                split_with=bill.split_with,
                correlation_id=correlation_id,
            )

        return bill, result

    async def add_payment(
        self,
        entry_date,
        paid_by: str,
        amount: str,
        note: str = "",
        manager_name: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Optional[PaymentRecord], ValidationResult]:
        """
        Validate and append a payment.

        Returns:
            (payment, validation_result) - payment is None when validation failed
        """
        correlation_id = correlation_id or create_correlation_id()

        result = self._validator.validate_payment(
            entry_date=entry_date,
            paid_by=paid_by,
            amount=amount,
            manager_name=manager_name,
        )
        if result.has_errors:
            await self._reject("payment", result, correlation_id)
            return None, result

        payment = PaymentRecord(
            date=format_entry_date(entry_date),
            paid_by=paid_by.strip(),
            amount=parse_entry_amount(amount),
            note=note.strip(),
        )

        try:
            await self._ledger_storage.append_payment(payment)
        except StorageError as e:
            await self._report_storage_error(e, correlation_id)
            raise
        except Exception as e:
            await self._report_unexpected_error(e, "append_payment", correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_payment_added(
                paid_by=payment.paid_by,
                amount=payment.amount,
                correlation_id=correlation_id,
            )

        return payment, result

    async def list_bills(self) -> list[BillRecord]:
        """Bills, newest first."""
        return await self._ledger_storage.fetch_bills()

    async def list_payments(self) -> list[PaymentRecord]:
        """Payments, newest first."""
        return await self._ledger_storage.fetch_payments()


class BalanceFlow:
    """
    Orchestrates the balance computation.

    Flow:
    1. Resolve the manager name (device state, then the Home sheet)
    2. Fetch bills and payments concurrently
    3. One call into the engine
    4. Optionally publish the result to the Summary sheet
    """

    def __init__(
        self,
        ledger_storage: LedgerStorageInterface,
        home_storage: HomeStorageInterface,
        state_store: Optional[LocalStateStore] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._ledger_storage = ledger_storage
        self._home_storage = home_storage
        self._state_store = state_store
        self._audit_logger = audit_logger

    async def resolve_manager_name(self, state: HomeState) -> str:
        """
        Find the manager name for this device's home.

        Local state wins. Otherwise read it from the home and cache it.

        Raises:
            ManagerNotSetError: If neither source has a name
        """
        if state.has_manager:
            return state.manager_name.strip()

        manager_name = await self._home_storage.fetch_manager_name()
        state.manager_name = manager_name
        if self._state_store:
            self._state_store.save(state)
        return manager_name

    async def compute_summary(
        self,
        manager_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> list[RoommateBalance]:
        """
        Compute everyone's balance relative to the manager.

        Returns:
            Balances, largest amount owed first

        Raises:
            ManagerNotSetError: If manager_name is blank (nothing is fetched)
            StorageError: If either fetch fails
        """
        if not manager_name or not manager_name.strip():
            raise ManagerNotSetError()

        correlation_id = correlation_id or create_correlation_id()

        try:
            bills, payments = await asyncio.gather(
                self._ledger_storage.fetch_bills(),
                self._ledger_storage.fetch_payments(),
            )
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="google_sheets",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise
        except Exception as e:
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"operation": "compute_summary"},
                    correlation_id=correlation_id,
                )
            raise

        balances = compute_balances(bills, payments, manager_name)

        if self._audit_logger:
            await self._audit_logger.log_balances_computed(
                manager_name=manager_name,
                bill_count=len(bills),
                payment_count=len(payments),
                balance_count=len(balances),
                correlation_id=correlation_id,
            )

        return balances

    async def publish_summary(
        self,
        balances: list[RoommateBalance],
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Rewrite the Summary sheet with these balances."""
        correlation_id = correlation_id or create_correlation_id()

        stored = await self._home_storage.store_summary(balances)

        if self._audit_logger:
            await self._audit_logger.log_summary_published(
                row_count=len(balances),
                correlation_id=correlation_id,
            )

        return stored

    async def refresh(self, state: HomeState) -> list[RoommateBalance]:
        """Resolve, compute and publish in one go (what the dashboard does)."""
        correlation_id = create_correlation_id()
        manager_name = await self.resolve_manager_name(state)
        balances = await self.compute_summary(manager_name, correlation_id)
        await self.publish_summary(balances, correlation_id)
        return balances


class HomeFlow:
    """
    Orchestrates the home lifecycle on this device.

    The device's HomeState is loaded once and written back after every
    change, so the app picks up where it left off on the next run.
    """

    def __init__(
        self,
        home_storage: HomeStorageInterface,
        invite_service: InviteService,
        state_store: LocalStateStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._home_storage = home_storage
        self._invite_service = invite_service
        self._state_store = state_store
        self._audit_logger = audit_logger
        self._state = state_store.load()

    @property
    def state(self) -> HomeState:
        return self._state

    def _save(self) -> None:
        self._state_store.save(self._state)

    async def create_home(
        self,
        manager_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> HomeState:
        """
        Create (or initialize) a home with this device's user as manager.

        Raises:
            ManagerNotSetError: If manager_name is blank
        """
        clean = manager_name.strip()
        if not clean:
            raise ManagerNotSetError("Manager name cannot be empty.")

        correlation_id = correlation_id or create_correlation_id()

        if self._state.spreadsheet_id:
            await self._home_storage.open_home(self._state.spreadsheet_id)
        spreadsheet_id = await self._home_storage.ensure_spreadsheet()
        await self._home_storage.initialize_home(clean)

        self._state = HomeState(spreadsheet_id=spreadsheet_id, manager_name=clean)
        self._save()

        logger.info("home_created", spreadsheet_id=spreadsheet_id)
        if self._audit_logger:
            await self._audit_logger.log_home_created(
                spreadsheet_id=spreadsheet_id,
                manager_name=clean,
                correlation_id=correlation_id,
            )

        return self._state

    async def attach_home(self, spreadsheet_id: str) -> HomeState:
        """
        Point this device at an existing home spreadsheet directly.

        The manager name is left for BalanceFlow to resolve from the home.
        """
        await self._home_storage.open_home(spreadsheet_id)
        self._state = HomeState(spreadsheet_id=spreadsheet_id)
        self._save()
        return self._state

    async def join_home(
        self,
        token: str,
        correlation_id: Optional[UUID] = None,
    ) -> HomeState:
        """
        Join a home by redeeming an invite token.

        Raises:
            InviteError: With a user-facing reason if the token is refused
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            spreadsheet_id = await self._invite_service.redeem_invite(token)
        except InviteError as e:
            if self._audit_logger:
                await self._audit_logger.log_invite_rejected(
                    token=normalize_token(token),
                    reason=e.message,
                    correlation_id=correlation_id,
                )
            raise

        state = await self.attach_home(spreadsheet_id)

        if self._audit_logger:
            await self._audit_logger.log_invite_redeemed(
                token=normalize_token(token),
                spreadsheet_id=spreadsheet_id,
                correlation_id=correlation_id,
            )
            await self._audit_logger.log_home_joined(
                spreadsheet_id=spreadsheet_id,
                correlation_id=correlation_id,
            )

        return state

    async def load_roommates(self) -> list[Roommate]:
        """Roommates of this home, with the manager flagged."""
        if not self._state.has_home:
            raise HomeNotConfiguredError()

        names = await self._home_storage.fetch_roommates()
        manager = normalize_name(self._state.manager_name or "")
        return [
            Roommate(name=name, is_manager=bool(manager) and normalize_name(name) == manager)
            for name in names
        ]

    async def add_roommate(
        self,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Add a roommate by name.

        Returns:
            False if the name is blank or already listed (ignoring case)
        """
        clean = name.strip()
        if not clean:
            return False

        existing = await self._home_storage.fetch_roommates()
        if normalize_name(clean) in {normalize_name(n) for n in existing}:
            return False

        correlation_id = correlation_id or create_correlation_id()
        await self._home_storage.add_roommate(clean)

        if self._audit_logger:
            await self._audit_logger.log_roommate_added(
                name=clean,
                correlation_id=correlation_id,
            )
        return True

    async def create_invite(
        self,
        created_by: str,
        correlation_id: Optional[UUID] = None,
    ) -> Invite:
        """
        Issue an invite token for this device's home.

        Raises:
            HomeNotConfiguredError: If this device has no home yet
        """
        if not self._state.has_home:
            raise HomeNotConfiguredError()

        correlation_id = correlation_id or create_correlation_id()
        invite = await self._invite_service.create_invite(
            spreadsheet_id=self._state.spreadsheet_id,
            created_by=created_by,
        )

        if self._audit_logger:
            await self._audit_logger.log_invite_created(
                token=invite.token,
                spreadsheet_id=invite.spreadsheet_id,
                created_by=invite.created_by,
                correlation_id=correlation_id,
            )
        return invite

    async def leave_home(self, correlation_id: Optional[UUID] = None) -> None:
        """
        Forget the home on this device and detach storage from it.

        The spreadsheet itself is untouched; creating a home afterwards
        starts a new one.
        """
        correlation_id = correlation_id or create_correlation_id()
        previous = self._state.spreadsheet_id

        self._state_store.clear()
        self._state = HomeState()

        # Audit storage may share the home's client, so record this first
        if self._audit_logger:
            await self._audit_logger.log_home_left(
                spreadsheet_id=previous,
                correlation_id=correlation_id,
            )

        await self._home_storage.close_home()


def create_app_components(
    use_storage: bool = True,
    state_store: Optional[LocalStateStore] = None,
) -> tuple[LedgerFlow, BalanceFlow, HomeFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run entirely in memory.
        state_store: Where device state lives (defaults to AppSettings.state_file)

    Returns:
        (ledger_flow, balance_flow, home_flow, sheets_client)
    """
    state_store = state_store or LocalStateStore(get_settings().app.state_path)
    state = state_store.load()

    sheets_client = None
    ledger_storage: LedgerStorageInterface
    home_storage: HomeStorageInterface
    invite_storage: InviteStorageInterface

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient(spreadsheet_id=state.spreadsheet_id)
            ledger_storage = GoogleSheetsLedgerStorage(sheets_client)
            home_storage = GoogleSheetsHomeStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
            if sheets_client.settings.invites_spreadsheet_id:
                invite_storage = GoogleSheetsInviteStorage()
            else:
                logger.warning("invite_registry_not_configured")
                invite_storage = InMemoryInviteStorage()
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            use_storage = False

    if not use_storage:
        sheets_client = None
        ledger_storage = InMemoryLedgerStorage()
        home_storage = InMemoryHomeStorage(
            spreadsheet_id=state.spreadsheet_id,
            manager_name=state.manager_name,
        )
        invite_storage = InMemoryInviteStorage()
        audit_logger = AuditLogger()  # Local-only logging

    ledger_flow = LedgerFlow(
        ledger_storage=ledger_storage,
        audit_logger=audit_logger,
    )

    balance_flow = BalanceFlow(
        ledger_storage=ledger_storage,
        home_storage=home_storage,
        state_store=state_store,
        audit_logger=audit_logger,
    )

    home_flow = HomeFlow(
        home_storage=home_storage,
        invite_service=InviteService(invite_storage),
        state_store=state_store,
        audit_logger=audit_logger,
    )

    return ledger_flow, balance_flow, home_flow, sheets_client
