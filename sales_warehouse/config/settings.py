"""
Sales Data Warehouse
Centralized Configuration Management

Pydantic settings with environment variable support for the raw -> silver -> gold
build: storage paths, cleansing policies, quality bounds and logging.
"""

from datetime import date
from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MalformedKeyPolicy(str, Enum):
    """What to do with product rows whose composite key cannot be decomposed"""
    REJECT = "reject"  # Exclude the row and record the reason
    COERCE = "coerce"  # Keep the row with best-effort key parts, never end-dated


class PathSettings(BaseSettings):
    """Raw extract and output locations"""

    model_config = SettingsConfigDict(env_prefix="WAREHOUSE_")

    raw_path: str = Field(default="./datasets", description="Root directory of the source CSV extracts")
    output_path: str = Field(default="./data/warehouse", description="Root directory for persisted layers")
    write_parquet: bool = Field(default=False, description="Persist committed tables as parquet")


class CleansingSettings(BaseSettings):
    """Silver layer cleansing policies"""

    model_config = SettingsConfigDict(env_prefix="CLEANSING_")

    malformed_key_policy: MalformedKeyPolicy = Field(
        default=MalformedKeyPolicy.REJECT,
        description="Policy for product keys shorter than 7 characters",
    )
    reference_date: Optional[date] = Field(
        default=None,
        description="Date used to null out future birthdates (defaults to today)",
    )
    legacy_customer_prefix: str = Field(default="NAS", description="Prefix stripped from ERP customer ids")


class QualitySettings(BaseSettings):
    """Validator bounds and gate behaviour"""

    model_config = SettingsConfigDict(env_prefix="QUALITY_")

    min_sales_date: date = Field(default=date(1900, 1, 1), description="Earliest plausible sales date")
    max_sales_date: date = Field(default=date(2050, 1, 1), description="Latest plausible sales date")
    min_birthdate: date = Field(default=date(1924, 1, 1), description="Earliest plausible birthdate")
    fail_on_validation_error: bool = Field(
        default=False,
        description="Abort the run when an error-severity check fails",
    )
    strict_mode: bool = Field(default=False, description="Treat warnings as failures")


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="text", alias="LOG_FORMAT", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing warehouse configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="sales-warehouse", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")

    paths: PathSettings = Field(default_factory=PathSettings)
    cleansing: CleansingSettings = Field(default_factory=CleansingSettings)
    quality: QualitySettings = Field(default_factory=QualitySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
