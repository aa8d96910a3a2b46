"""
Configuration Management for Studio Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Ledger conventions (which pocket collects client income, which description
prefixes count as deposits) live here rather than in the derivation code,
so a studio with different bookkeeping habits only changes environment.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # One worksheet per entity collection, named <prefix><collection>
    worksheet_prefix: str = Field(
        default="",
        description="Prefix prepended to every collection worksheet name"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

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


class LedgerSettings(BaseSettings):
    """
    Bookkeeping conventions used by derivation and conversion.

    The defaults reproduce the studio's existing ledger so that
    historical transactions keep deriving the same balances.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    client_income_pocket_id: str = Field(
        default="POC005",
        description="Pocket that collects every client payment"
    )
    cash_card_id: str = Field(
        default="CARD_CASH",
        description="Virtual card that stands for cash on hand"
    )
    deposit_markers: list[str] = Field(
        default_factory=lambda: ["Setor ke", "DP Proyek", "Pelunasan Proyek"],
        description="Description prefixes that add to a pocket (legacy rows without flow_direction)"
    )

    # Categories
    down_payment_category: str = Field(default="DP Proyek")
    down_payment_method: str = Field(default="Transfer Bank")
    settlement_category: str = Field(default="Pelunasan Proyek")
    transfer_category: str = Field(default="Transfer Internal")
    reward_grant_category: str = Field(default="Hadiah Freelancer")
    reward_withdrawal_category: str = Field(default="Penarikan Hadiah Freelancer")

    # Open-question switches
    enforce_promo_usage_cap: bool = Field(
        default=True,
        description="Fail a conversion that would push a promo code past max_usage"
    )
    strict_reward_matching: bool = Field(
        default=False,
        description="Raise instead of dropping reward rows that match no team member"
    )


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

    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for the local structured log"
    )


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

    # Loaded lazily so the ledger works without Sheets credentials

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

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

    for name in ("google_sheets", "ledger", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
