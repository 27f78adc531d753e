"""
Configuration Management for Bill Mate

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.

Per-device state (which home this device belongs to, the manager's name)
is NOT configuration. It lives in billmate.session.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: Optional[str] = Field(
        default=None,
        description="Home spreadsheet to open when the device has none stored"
    )
    invites_spreadsheet_id: Optional[str] = Field(
        default=None,
        description="Shared spreadsheet holding the invite token registry"
    )

    # Sheet names within the home spreadsheet
    bills_sheet_name: str = Field(default="Bills")
    payments_sheet_name: str = Field(default="Payments")
    summary_sheet_name: str = Field(default="Summary")
    home_sheet_name: str = Field(default="Home")
    roommates_sheet_name: str = Field(default="Roommates")
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    # Sheet name within the invite registry
    invites_sheet_name: str = Field(default="Invites")

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Local device state
    state_file: str = Field(
        default="~/.billmate/home.json",
        description="Where this device remembers its home spreadsheet and manager"
    )

    # Home creation
    spreadsheet_title: str = Field(
        default="Bill Mate",
        min_length=1,
        description="Title given to newly created home spreadsheets"
    )

    # Display
    currency_code: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="ISO currency code used when formatting balances"
    )

    # Invites
    invite_ttl_hours: int = Field(
        default=72,
        ge=1,
        le=24 * 30,
        description="How long a new invite token stays valid"
    )
    invite_max_uses: int = Field(
        default=5,
        ge=0,
        description="How many times a token can be redeemed (0 = unlimited)"
    )

    @property
    def state_path(self) -> Path:
        """Get the state file as an expanded path."""
        return Path(self.state_file).expanduser()


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        sheets = settings.google_sheets
        results["google_sheets"] = True
        results["invites"] = bool(sheets.invites_spreadsheet_id)
        if not results["invites"]:
            results["invites_error"] = "GOOGLE_SHEETS_INVITES_SPREADSHEET_ID is not set"
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)
        results["invites"] = False
        results["invites_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
