"""
Balance Engine

Turns a ledger of bills and payments into what each roommate owes
the manager.

DESIGN DECISION: The engine is a pure function.
It never touches storage, auth, or the clock. Flows fetch the two
record lists (concurrently), then make one synchronous call here.

RULES:
- Every bill is split evenly across everyone in SplitWith,
  the manager included. The manager is never charged, so any share
  that lands on the manager is absorbed.
- A non-manager who fronted a bill is credited the full amount.
- Payments from non-managers reduce what they owe.
- Names match case-insensitively after trimming; the first spelling
  seen is the one displayed.
"""

from typing import Iterable

from billmate.models.ledger import BillRecord, PaymentRecord, RoommateBalance


def normalize_name(name: str) -> str:
    """Comparison key for a free-text name."""
    return name.strip().casefold()


class _Totals:
    """Running totals keyed by normalized name, remembering display spelling."""

    def __init__(self):
        self._amounts: dict[str, float] = {}
        self._display: dict[str, str] = {}

    def add(self, name: str, delta: float) -> None:
        display = name.strip()
        key = display.casefold()
        if not key:
            return
        if key not in self._amounts:
            self._amounts[key] = 0.0
            self._display[key] = display
        self._amounts[key] += delta

    def discard(self, name: str) -> None:
        key = normalize_name(name)
        self._amounts.pop(key, None)
        self._display.pop(key, None)

    def balances(self) -> list[RoommateBalance]:
        return [
            RoommateBalance(name=self._display[key], amount_owed=amount)
            for key, amount in self._amounts.items()
        ]


def compute_balances(
    bills: Iterable[BillRecord],
    payments: Iterable[PaymentRecord],
    manager_name: str,
) -> list[RoommateBalance]:
    """
    Compute net balances relative to the manager.

    Args:
        bills: Bill records in ledger order
        payments: Payment records in ledger order
        manager_name: The person all balances are relative to

    Returns:
        One RoommateBalance per participant or payer (manager excluded),
        largest debtor first. Ties keep first-appearance order.
    """
    totals = _Totals()
    manager = normalize_name(manager_name)

    for bill in bills:
        amount = bill.amount
        if amount == 0:
            continue

        participants = bill.participants
        if not participants:
            continue

        share = amount / len(participants)

        for person in participants:
            if normalize_name(person) != manager:
                totals.add(person, share)

        # Payer credit is independent of whether they also participate
        payer = bill.paid_by.strip()
        if payer and normalize_name(payer) != manager:
            totals.add(payer, -amount)

    for payment in payments:
        payer = payment.paid_by.strip()
        if not payer:
            continue
        if normalize_name(payer) == manager:
            continue
        totals.add(payer, -payment.amount)

    totals.discard(manager_name)

    return sorted(
        totals.balances(),
        key=lambda balance: balance.amount_owed,
        reverse=True,
    )
