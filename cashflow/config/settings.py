"""
Configuration Management for Cashflow

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures a missing credential is reported before any network call.
"""

from functools import lru_cache
from pathlib import Path
from typing import Union

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """A required setting (usually a credential) is missing or invalid."""

    def __init__(self, section: str, message: str):
        self.section = section
        super().__init__(f"{section} is not configured: {message}")


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        populate_by_name=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("GEMINI_API_KEY", "API_KEY"),
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=2048,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class StorageSettings(BaseSettings):
    """Local snapshot storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CASHFLOW_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    snapshot_path: Path = Field(
        default=Path(".cashflow/state.json"),
        description="File holding the persisted key-value snapshot"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="CASHFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Presentation
    language: str = Field(
        default="en",
        description="UI language code"
    )
    locale: str = Field(
        default="en_US",
        description="Locale used for dates and currency (e.g. en_US, ar_EG)"
    )
    currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="ISO 4217 currency code"
    )

    # Import limits
    max_import_rows: int = Field(
        default=5000,
        ge=1,
        description="Maximum rows accepted from one CSV import"
    )

    @field_validator('currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()

    @field_validator('locale')
    @classmethod
    def normalize_locale(cls, v: str) -> str:
        """Babel expects underscores (en_US), browsers send dashes (en-US)."""
        return v.replace("-", "_")


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    Sub-settings are loaded lazily to allow partial configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def gemini(self) -> GeminiSettings:
        try:
            return GeminiSettings()
        except ValidationError as e:
            raise ConfigurationError(
                "gemini",
                "set GEMINI_API_KEY (or API_KEY) in the environment",
            ) from e

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

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


def validate_all_settings() -> dict[str, Union[bool, str]]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    "<name>_error" entries for the sections that failed.
    Useful for startup checks and the settings page.
    """
    results = {}

    settings = get_settings()

    for name in ("gemini", "storage", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except (ConfigurationError, ValidationError) as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
