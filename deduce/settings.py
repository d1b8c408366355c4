"""DEDUCE Configuration Settings using Pydantic.

Values come from DEDUCE_* environment variables or a .env file.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DeduceSettings(BaseSettings):
    """Central configuration for DEDUCE."""

    model_config = SettingsConfigDict(
        env_prefix="DEDUCE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # --- Knowledge Base ---
    knowledge_base: str = Field(
        default="knowledge_base.json",
        description="Path or http(s) URL of the default knowledge base document",
    )

    # --- HTTP Loading ---
    http_timeout: float = Field(default=30.0, gt=0)
    http_max_retries: int = Field(default=3, ge=1)
    http_retry_delay: float = Field(default=1.0, ge=0)

    # --- Logging ---
    log_level: str = "WARNING"
    log_file: str | None = None


_settings: DeduceSettings | None = None


def get_settings() -> DeduceSettings:
    """Get or create global settings instance"""
    global _settings
    if _settings is None:
        _settings = DeduceSettings()
    return _settings


def reload_settings() -> DeduceSettings:
    """Re-read settings from the environment"""
    global _settings
    _settings = None
    return get_settings()
