"""Per-device session state package."""

from billmate.session.state import (
    HomeState,
    LocalStateStore,
    extract_spreadsheet_id,
    spreadsheet_url,
)

__all__ = [
    "HomeState",
    "LocalStateStore",
    "extract_spreadsheet_id",
    "spreadsheet_url",
]
