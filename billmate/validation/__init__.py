"""Ledger entry validation package."""

from billmate.validation.validator import (
    EntryValidator,
    format_entry_date,
    parse_entry_amount,
)

__all__ = ["EntryValidator", "format_entry_date", "parse_entry_amount"]
