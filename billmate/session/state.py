"""
Local Home State

What this device remembers between runs: which home spreadsheet it
belongs to and who manages it.

DESIGN DECISION: State is an explicit object handed to the flows,
not a process-wide singleton. Tests use a temp file; the app uses
the path from AppSettings.state_file.
"""

from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError


SPREADSHEET_URL_TEMPLATE = "https://docs.google.com/spreadsheets/d/{spreadsheet_id}"

logger = structlog.get_logger("billmate.session")


class HomeState(BaseModel):
    """Per-device home selection."""
    model_config = ConfigDict(str_strip_whitespace=True)

    spreadsheet_id: Optional[str] = Field(
        default=None,
        description="Home spreadsheet this device reads and writes"
    )
    manager_name: Optional[str] = Field(
        default=None,
        description="Cached manager name (source of truth is the Home sheet)"
    )

    @property
    def has_home(self) -> bool:
        return bool(self.spreadsheet_id)

    @property
    def has_manager(self) -> bool:
        return bool(self.manager_name and self.manager_name.strip())


class LocalStateStore:
    """Reads and writes HomeState as JSON on disk."""

    def __init__(self, path: Path):
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> HomeState:
        """Load saved state; a missing or unreadable file is an empty state."""
        if not self._path.exists():
            return HomeState()
        try:
            return HomeState.model_validate_json(self._path.read_text(encoding="utf-8"))
        except ValidationError as e:
            logger.warning(
                "state_file_unreadable",
                path=str(self._path),
                error_count=e.error_count(),
            )
            return HomeState()

    def save(self, state: HomeState) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(state.model_dump_json(indent=2), encoding="utf-8")

    def clear(self) -> None:
        """Forget the home and the manager."""
        self._path.unlink(missing_ok=True)


def spreadsheet_url(spreadsheet_id: str) -> str:
    return SPREADSHEET_URL_TEMPLATE.format(spreadsheet_id=spreadsheet_id)


def extract_spreadsheet_id(text: str) -> Optional[str]:
    """
    Accept either a full Google Sheets URL or a raw spreadsheet ID.

    Returns None for blank input.
    """
    trimmed = text.strip()
    if not trimmed:
        return None

    parsed = urlparse(trimmed)
    if parsed.hostname and "google" in parsed.hostname:
        _, marker, after = parsed.path.partition("/d/")
        if marker:
            spreadsheet_id = after.split("/")[0]
            if spreadsheet_id:
                return spreadsheet_id

    return trimmed
