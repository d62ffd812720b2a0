"""
Configuration management for the billing engine.
"""

from decimal import Decimal
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BillingEngineConfig(BaseSettings):
    """Configuration settings for the billing engine."""

    # Database Configuration
    database_url: str = Field(default="sqlite:///shp_billing.db", alias="DATABASE_URL")
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # Billing Configuration
    default_hourly_rate: Decimal = Field(
        default=Decimal("75"), alias="DEFAULT_HOURLY_RATE"
    )
    default_annual_hour_allowance: Decimal = Field(
        default=Decimal("2.0"), alias="DEFAULT_ANNUAL_HOUR_ALLOWANCE"
    )

    # Application Configuration
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="standard", alias="LOG_FORMAT")

    # Processing Configuration
    max_retries: int = Field(default=3, alias="MAX_RETRIES")
    retry_delay: float = Field(default=0.05, alias="RETRY_DELAY")
    recalculation_workers: int = Field(default=4, alias="RECALCULATION_WORKERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
    )

    @field_validator("default_hourly_rate", "default_annual_hour_allowance")
    @classmethod
    def validate_non_negative(cls, v, info):
        """Ensure billing defaults are not negative."""
        if v < 0:
            raise ValueError(f"{info.field_name} cannot be negative")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ["standard", "json"]
        if v.lower() not in valid_formats:
            raise ValueError(f"Log format must be one of: {valid_formats}")
        return v.lower()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Ensure environment is valid."""
        valid_envs = ["development", "testing", "production"]
        if v.lower() not in valid_envs:
            raise ValueError(f"Environment must be one of: {valid_envs}")
        return v.lower()

    @field_validator("max_retries", "recalculation_workers")
    @classmethod
    def validate_counts(cls, v, info):
        """Ensure retry and worker counts are usable."""
        minimum = 0 if info.field_name == "max_retries" else 1
        if v < minimum:
            raise ValueError(f"{info.field_name} must be at least {minimum}")
        return v


def load_config(env_file: Optional[str] = None) -> BillingEngineConfig:
    """Load configuration from environment variables and .env file."""
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    return BillingEngineConfig()


# Global configuration instance
_config: Optional[BillingEngineConfig] = None


def get_config() -> BillingEngineConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config(env_file: Optional[str] = None) -> BillingEngineConfig:
    """Reload configuration (useful for testing)."""
    global _config
    _config = load_config(env_file)
    return _config
