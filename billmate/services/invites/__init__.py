"""Invite token services package."""

from billmate.services.invites.invite_service import (
    EmptyTokenError,
    InviteError,
    InviteExhaustedError,
    InviteExpiredError,
    InviteInactiveError,
    InviteInvalidError,
    InviteNotFoundError,
    InviteService,
    check_redeemable,
    generate_token,
)

__all__ = [
    "EmptyTokenError",
    "InviteError",
    "InviteExhaustedError",
    "InviteExpiredError",
    "InviteInactiveError",
    "InviteInvalidError",
    "InviteNotFoundError",
    "InviteService",
    "check_redeemable",
    "generate_token",
]
