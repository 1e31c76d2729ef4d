"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class FinanceConfig(BaseSettings):
    """Personal finance ledger configuration"""

    model_config = SettingsConfigDict(
        env_prefix="FINANCE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Database configuration
    database_url: str = "sqlite:///finance.db"  # "memory://" for in-memory storage

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 3000

    # Security configuration
    jwt_secret: str = "change-me-in-production"
    jwt_expiry_hours: int = 24
    jwt_algorithm: str = "HS256"
    password_min_length: int = 6
    password_reset_expiry_minutes: int = 60

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Subscription processing
    subscription_processing_enabled: bool = True
    subscription_processing_interval_seconds: int = 3600
    upcoming_subscription_days: int = 7

    # Business rules configuration
    recent_transactions_limit: int = 5


# Global configuration instance
config = FinanceConfig()


def get_config() -> FinanceConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> FinanceConfig:
    """Reload configuration from environment"""
    global config
    config = FinanceConfig()
    return config
