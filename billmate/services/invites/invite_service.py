"""
Invite Token Service

The manager issues a short token; a new roommate types it in on their
device and is attached to the manager's home spreadsheet.

DESIGN DECISION: Redemption checks run in a fixed order
(exists -> active -> not expired -> points somewhere -> uses left)
so the user always gets the most fundamental reason first.

DESIGN DECISION: The use counter is bumped with a compare-then-write.
If another device redeemed the same token in between, we re-read and
re-check instead of overcounting.
"""

import secrets
from datetime import datetime
from typing import Callable, Optional

from billmate.config import get_settings
from billmate.models.invite import Invite, normalize_token, utc_now
from billmate.services.storage.interface import (
    ConflictError,
    DuplicateError,
    InviteStorageInterface,
)


# A-Z and 2-9 without 0/O and 1/I, which look alike when read aloud
TOKEN_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
TOKEN_CHUNK = 4

MAX_TOKEN_ATTEMPTS = 5
MAX_REDEEM_ATTEMPTS = 3


class InviteError(Exception):
    """Base exception for invite errors."""

    code: int = 0

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class EmptyTokenError(InviteError):
    """Nothing was typed."""

    def __init__(self):
        super().__init__("Token is empty.")


class InviteNotFoundError(InviteError):
    code = 404

    def __init__(self):
        super().__init__("Invite not found.")


class InviteInactiveError(InviteError):
    code = 403

    def __init__(self):
        super().__init__("Invite is inactive.")


class InviteExpiredError(InviteError):
    code = 410

    def __init__(self):
        super().__init__("Invite has expired.")


class InviteInvalidError(InviteError):
    """The invite doesn't point at a spreadsheet."""

    def __init__(self):
        super().__init__("Invite is invalid (missing spreadsheetId).")


class InviteExhaustedError(InviteError):
    code = 429

    def __init__(self):
        super().__init__("Invite has reached its usage limit.")


def generate_token() -> str:
    """Random XXXX-XXXX token."""
    def chunk() -> str:
        return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(TOKEN_CHUNK))

    return f"{chunk()}-{chunk()}"


def check_redeemable(invite: Optional[Invite], now: datetime) -> Invite:
    """
    Raise the first reason this invite can't be redeemed.

    Returns the invite unchanged when it can be.
    """
    if invite is None:
        raise InviteNotFoundError()
    if not invite.active:
        raise InviteInactiveError()
    if invite.is_expired(now):
        raise InviteExpiredError()
    if not invite.spreadsheet_id:
        raise InviteInvalidError()
    if invite.is_exhausted:
        raise InviteExhaustedError()
    return invite


class InviteService:
    """
    Issues and redeems invite tokens against an invite registry.
    """

    def __init__(
        self,
        storage: InviteStorageInterface,
        token_factory: Callable[[], str] = generate_token,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._storage = storage
        self._token_factory = token_factory
        self._clock = clock
        self._settings = get_settings().app

    async def create_invite(
        self,
        spreadsheet_id: str,
        created_by: str,
        ttl_hours: Optional[int] = None,
        max_uses: Optional[int] = None,
    ) -> Invite:
        """
        Issue a new invite for a home.

        Args:
            spreadsheet_id: Home the token grants access to
            created_by: Identity of the issuer
            ttl_hours: Validity window (defaults from settings)
            max_uses: Redemption limit, 0 for unlimited (defaults from settings)

        Returns:
            The stored invite
        """
        ttl = ttl_hours if ttl_hours is not None else self._settings.invite_ttl_hours
        uses = max_uses if max_uses is not None else self._settings.invite_max_uses

        last_error: Optional[DuplicateError] = None
        for _ in range(MAX_TOKEN_ATTEMPTS):
            invite = Invite.issue(
                token=self._token_factory(),
                spreadsheet_id=spreadsheet_id,
                created_by=created_by or "unknown",
                ttl_hours=ttl,
                max_uses=uses,
                now=self._clock(),
            )
            try:
                await self._storage.save_invite(invite)
                return invite
            except DuplicateError as e:
                last_error = e  # Token collision - draw another

        raise last_error

    async def redeem_invite(self, raw_token: str) -> str:
        """
        Redeem a token typed by a roommate.

        Returns:
            The spreadsheet ID of the home they joined

        Raises:
            InviteError: With a user-facing reason if the token can't be used
        """
        token = normalize_token(raw_token)
        if not token:
            raise EmptyTokenError()

        attempts = 0
        while True:
            # Re-read on every pass: a conflict means someone else just redeemed
            invite = check_redeemable(
                await self._storage.get_invite(token),
                self._clock(),
            )
            try:
                await self._storage.record_use(invite)
                return invite.spreadsheet_id
            except ConflictError:
                attempts += 1
                if attempts >= MAX_REDEEM_ATTEMPTS:
                    raise
