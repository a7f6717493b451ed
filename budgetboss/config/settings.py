"""
Configuration Management for BudgetBoss

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The remote store is optional - the app must run fully offline when it
is not configured, so only the remote settings carry required fields.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets remote store configuration."""

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
        description="ID of the spreadsheet holding the remote tables"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before enabling sync."
            )
        return v


class LocalStorageSettings(BaseSettings):
    """Local replica configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BUDGETBOSS_LOCAL_",
        extra="ignore"
    )

    data_file: str = Field(
        default="budgetboss_data.json",
        description="Path of the JSON document backing the local key-value store"
    )

    @property
    def data_path(self) -> Path:
        return Path(self.data_file).expanduser()


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="BUDGETBOSS_",
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

    # Defaults for lazily created records
    default_budget_name: str = Field(
        default="My Budget",
        description="Name given to budgets created on first load"
    )
    local_owner_id: str = Field(
        default="local-user",
        description="Placeholder owner used while unauthenticated"
    )
    default_category_color: str = Field(
        default="#3B82F6",
        description="Color for categories created without one"
    )
    default_account: str = Field(
        default="Cash",
        description="Account used when a transaction does not name one"
    )

    # Derived view thresholds
    warning_threshold: float = Field(
        default=0.8,
        gt=0.0,
        le=1.0,
        description="Fraction of available budget above which a category is in warning"
    )
    top_categories_limit: int = Field(
        default=5,
        ge=1,
        description="How many entries the category rankings return"
    )
    frequent_pattern_min_count: int = Field(
        default=3,
        ge=1,
        description="Occurrences before a pattern is offered for quick repeat"
    )
    frequent_pattern_limit: int = Field(
        default=3,
        ge=1,
        description="Default number of quick-repeat patterns returned"
    )

    # Persistence retries
    persist_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for writing a mutation to the local store"
    )
    persist_retry_wait_seconds: float = Field(
        default=0.05,
        ge=0.0,
        description="Base wait between local write attempts"
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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def local_storage(self) -> LocalStorageSettings:
        return LocalStorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    A missing remote configuration is reported but is not fatal:
    the app falls back to offline mode.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    try:
        _ = settings.local_storage
        results["local_storage"] = True
    except Exception as e:
        results["local_storage"] = False
        results["local_storage_error"] = str(e)

    try:
        _ = settings.google_sheets
        results["google_sheets"] = True
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    return results
