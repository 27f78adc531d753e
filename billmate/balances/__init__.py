"""Balance computation package."""

from billmate.balances.engine import compute_balances, normalize_name
from billmate.balances.presentation import (
    BalanceTone,
    balance_tone,
    format_currency,
    summary_rows,
)

__all__ = [
    "BalanceTone",
    "balance_tone",
    "compute_balances",
    "format_currency",
    "normalize_name",
    "summary_rows",
]
