"""
Ledger Models for Bill Mate

These models define the records that flow between the spreadsheet,
the balance engine, and the UI.

DESIGN DECISION: Ledger records are frozen snapshots.
They are fetched fresh every time balances are requested, and nothing
downstream is allowed to mutate them.

DESIGN DECISION: Amounts are floats, not Decimals.
The spreadsheet holds free-form numbers and the engine divides them
evenly between participants. Rounding is a display concern only
(see billmate.balances.presentation).
"""

import math
import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# COLUMN LAYOUTS - positional, header row first
# =============================================================================

BILL_COLUMNS = ["Date", "PaidBy", "Description", "Amount", "SplitWith"]
PAYMENT_COLUMNS = ["Date", "PaidBy", "Amount", "Note"]
SUMMARY_COLUMNS = ["Name", "Amount Owed ($)"]
ROOMMATE_COLUMNS = ["Name"]

# Shorter rows than these are dropped when reading
MIN_BILL_CELLS = 4
MIN_PAYMENT_CELLS = 3

# Plain decimal or scientific notation; no padding, separators or underscores
AMOUNT_PATTERN = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def parse_amount(value: Any) -> float:
    """
    Coerce a spreadsheet cell to a float.

    Text must be a plain number ("12", "-3.5", "1e3"). Anything else,
    including padded text, "1,000" or "1_000", becomes 0.0, as do blank and
    non-finite values, so that a single bad cell never takes the whole
    ledger down.
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = "" if value is None else str(value)
        if not AMOUNT_PATTERN.fullmatch(text):
            return 0.0
        number = float(text)
    if not math.isfinite(number):
        return 0.0
    return number


def split_names(split_with: str) -> list[str]:
    """Split a comma-separated name list, trimming and dropping blanks."""
    return [name.strip() for name in split_with.split(",") if name.strip()]


def _cell(row: list, index: int) -> str:
    """Read a cell as text, tolerating short rows."""
    try:
        value = row[index]
    except IndexError:
        return ""
    return "" if value is None else str(value)


# =============================================================================
# LEDGER RECORDS
# =============================================================================

class BillRecord(BaseModel):
    """
    A shared expense.

    `paid_by` fronted the money; `split_with` lists everyone sharing it.
    """
    model_config = ConfigDict(frozen=True)

    date: str = Field(
        default="",
        description="YYYY-MM-DD, used for sorting only"
    )
    paid_by: str = Field(
        default="",
        description="Whoever fronted the money"
    )
    description: str = Field(default="")
    amount: float = Field(
        default=0.0,
        description="Total cost; zero is a no-op, negative is allowed"
    )
    split_with: str = Field(
        default="",
        description="Comma-separated names sharing the cost"
    )

    @property
    def participants(self) -> list[str]:
        return split_names(self.split_with)

    @classmethod
    def from_sheets_row(cls, row: list) -> Optional["BillRecord"]:
        """
        Build a bill from a Bills sheet row.

        Returns None for rows with fewer than four cells.
        """
        if len(row) < MIN_BILL_CELLS:
            return None
        return cls(
            date=_cell(row, 0),
            paid_by=_cell(row, 1),
            description=_cell(row, 2),
            amount=parse_amount(_cell(row, 3)),
            split_with=_cell(row, 4),
        )

    def to_sheets_row(self) -> list:
        """
        Convert to a row for the Bills sheet.

        Returns columns in order:
        [date, paid_by, description, amount, split_with]
        """
        return [
            self.date,
            self.paid_by,
            self.description,
            _format_number(self.amount),
            self.split_with,
        ]


class PaymentRecord(BaseModel):
    """A roommate paying the manager back."""
    model_config = ConfigDict(frozen=True)

    date: str = Field(default="")
    paid_by: str = Field(
        default="",
        description="Roommate repaying the manager"
    )
    amount: float = Field(
        default=0.0,
        description="Amount repaid; not rejected when negative"
    )
    note: str = Field(default="")

    @classmethod
    def from_sheets_row(cls, row: list) -> Optional["PaymentRecord"]:
        """Build a payment from a Payments sheet row (None if under three cells)."""
        if len(row) < MIN_PAYMENT_CELLS:
            return None
        return cls(
            date=_cell(row, 0),
            paid_by=_cell(row, 1),
            amount=parse_amount(_cell(row, 2)),
            note=_cell(row, 3),
        )

    def to_sheets_row(self) -> list:
        return [
            self.date,
            self.paid_by,
            _format_number(self.amount),
            self.note,
        ]


def _format_number(amount: float) -> str:
    # 12.0 -> "12", 12.5 -> "12.5"
    if amount.is_integer() and abs(amount) < 1e15:
        return str(int(amount))
    return repr(amount)


# =============================================================================
# DERIVED / VIEW MODELS
# =============================================================================

class RoommateBalance(BaseModel):
    """
    Net position of one person relative to the manager.

    Positive: owes the manager. Negative: the manager owes them.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    amount_owed: float

    @property
    def is_settled(self) -> bool:
        return self.amount_owed == 0


class Roommate(BaseModel):
    """A name on the Roommates sheet."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    is_manager: bool = False
