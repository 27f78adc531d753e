"""
Invite Models for Bill Mate

An invite token lets a new roommate attach their device to an existing
home spreadsheet without the manager sharing the spreadsheet URL.

DESIGN DECISION: Tokens are short (XXXX-XXXX) and human-typeable.
They expire and carry a usage limit, so a leaked token is only
useful for a short window.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


INVITE_COLUMNS = [
    "token",
    "spreadsheet_id",
    "created_by",
    "created_at",
    "expires_at",
    "max_uses",
    "uses",
    "active",
]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_token(raw_token: str) -> str:
    """Tokens are typed by hand: ignore surrounding whitespace and case."""
    return raw_token.strip().upper()


class Invite(BaseModel):
    """
    A stored invite token.

    `max_uses` of 0 means unlimited.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    token: str = Field(
        ...,
        min_length=1,
        description="XXXX-XXXX token, upper case"
    )
    spreadsheet_id: str = Field(
        default="",
        description="Home spreadsheet this token grants access to"
    )
    created_by: str = Field(
        default="unknown",
        description="Identity of whoever issued the token"
    )
    created_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime
    max_uses: int = Field(default=5, ge=0)
    uses: int = Field(default=0, ge=0)
    active: bool = True

    @field_validator('token')
    @classmethod
    def upper_case_token(cls, v: str) -> str:
        return v.upper()

    @classmethod
    def issue(
        cls,
        token: str,
        spreadsheet_id: str,
        created_by: str,
        ttl_hours: int,
        max_uses: int,
        now: Optional[datetime] = None,
    ) -> "Invite":
        """Create a fresh, unused invite valid for `ttl_hours`."""
        now = now or utc_now()
        return cls(
            token=token,
            spreadsheet_id=spreadsheet_id,
            created_by=created_by,
            created_at=now,
            expires_at=now + timedelta(hours=ttl_hours),
            max_uses=max_uses,
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utc_now()) > self.expires_at

    @property
    def is_exhausted(self) -> bool:
        return self.max_uses > 0 and self.uses >= self.max_uses

    def to_sheets_row(self) -> list:
        """Convert to a row for the Invites sheet (see INVITE_COLUMNS)."""
        return [
            self.token,
            self.spreadsheet_id,
            self.created_by,
            self.created_at.isoformat(),
            self.expires_at.isoformat(),
            str(self.max_uses),
            str(self.uses),
            str(self.active),
        ]

    @classmethod
    def from_sheets_row(cls, row: list) -> "Invite":
        """Convert an Invites sheet row back to an Invite."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return cls(
            token=safe_get(0),
            spreadsheet_id=safe_get(1),
            created_by=safe_get(2, "unknown"),
            created_at=_parse_timestamp(safe_get(3)),
            expires_at=_parse_timestamp(safe_get(4)),
            max_uses=int(safe_get(5, "0")),
            uses=int(safe_get(6, "0")),
            active=safe_get(7).lower() == "true",
        )


def _parse_timestamp(value: str) -> datetime:
    # Missing timestamps read as long expired
    if not value:
        return datetime.min.replace(tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
