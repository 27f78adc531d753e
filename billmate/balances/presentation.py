"""
Presentation helpers for balances.

Rounding happens here and only here; the engine works in raw floats.
"""

from enum import Enum

from billmate.models.ledger import SUMMARY_COLUMNS, RoommateBalance


CURRENCY_SYMBOLS = {
    "USD": "$",
    "CAD": "$",
    "AUD": "$",
    "EUR": "€",
    "GBP": "£",
    "INR": "₹",
    "JPY": "¥",
}


class BalanceTone(str, Enum):
    """How a balance row should be colored."""
    OWES = "owes"         # owes the manager - warning color
    CREDIT = "credit"     # manager owes them - positive color
    SETTLED = "settled"


def balance_tone(amount: float) -> BalanceTone:
    if amount > 0:
        return BalanceTone.OWES
    if amount < 0:
        return BalanceTone.CREDIT
    return BalanceTone.SETTLED


def format_currency(amount: float, currency: str = "USD") -> str:
    """
    Format an amount for display, e.g. 1234.5 -> "$1,234.50", -0.006 -> "-$0.01".

    Unknown currency codes are prefixed with the code itself.
    """
    code = currency.upper()
    symbol = CURRENCY_SYMBOLS.get(code, f"{code} ")
    rounded = round(amount, 2)
    if rounded == 0:
        rounded = 0.0  # no "-$0.00"
    sign = "-" if rounded < 0 else ""
    return f"{sign}{symbol}{abs(rounded):,.2f}"


def summary_rows(balances: list[RoommateBalance]) -> list[list]:
    """Rows for the Summary sheet, header first, amounts rounded to cents."""
    rows: list[list] = [list(SUMMARY_COLUMNS)]
    for balance in balances:
        rows.append([balance.name, round(balance.amount_owed, 2)])
    return rows
