"""
Configuration Management for Kazi Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Nothing reads an API key at import time. Components receive the settings
(or objects built from them) when they are constructed.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GeminiSettings(BaseSettings):
    """Gemini inference backend configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=512,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class ExtractorSettings(BaseSettings):
    """Intent & field extractor configuration."""

    model_config = SettingsConfigDict(
        env_prefix="EXTRACTOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: str = Field(
        default="rules",
        pattern="^(rules|gemini)$",
        description="Which inference backend parses free text"
    )
    amount_tie_break: str = Field(
        default="cue_then_largest",
        pattern="^(cue_then_largest|largest)$",
        description="How to choose between several numbers in one sentence"
    )
    timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Give up on the backend after this long (None = wait)"
    )
    default_category: str = Field(
        default="General",
        min_length=1,
        description="Category used when none can be inferred"
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

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Business defaults
    default_currency: str = Field(
        default="UGX",
        min_length=3,
        max_length=3,
        description="Currency assigned to new business profiles"
    )

    # Validation thresholds
    max_transaction_amount: float = Field(
        default=100_000_000.0,
        gt=0,
        description="Amounts above this are flagged for a second look"
    )

    # Local persistence
    data_dir: str = Field(
        default=".kazi_ledger",
        description="Directory for the JSON transaction store"
    )

    @field_validator("default_currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    @property
    def data_path(self) -> Path:
        """Get the data directory as a Path."""
        return Path(self.data_dir)


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

    # Sub-settings are loaded lazily so the rule-based setup
    # never needs a Gemini key.

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def extractor(self) -> ExtractorSettings:
        return ExtractorSettings()

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


def validate_all_settings() -> dict[str, object]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error entries for the sections that failed.
    Useful for startup checks.
    """
    results: dict[str, object] = {}
    settings = get_settings()

    for name in ("gemini", "extractor", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
