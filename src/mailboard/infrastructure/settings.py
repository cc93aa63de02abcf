"""Application settings using Pydantic Settings for configuration management."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Application
    app_name: str = "mailboard"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 3000

    # Mailbox (shared by all tenants)
    imap_host: str = "imap.gmail.com"
    imap_port: int = 993
    imap_user: str = ""
    imap_password: SecretStr = Field(default=SecretStr(""))
    imap_folder: str = "INBOX"
    imap_timeout_seconds: float = Field(default=30.0, gt=0)

    # Polling
    poll_interval_seconds: float = Field(default=15.0, gt=0)

    # monday.com
    monday_api_url: str = "https://api.monday.com/v2"
    monday_api_version: str | None = "2024-10"
    monday_timeout_seconds: float = Field(default=30.0, gt=0)
    default_phone_country: str = "IN"

    # Dedup ledger (in-memory)
    dedup_ttl_hours: float = Field(default=24 * 7, gt=0)
    dedup_max_entries: int = Field(default=100_000, gt=0)

    # Optional durable state; unset keeps tenants and claims in memory
    state_db_path: str | None = None

    @computed_field
    @property
    def imap_configured(self) -> bool:
        """Whether mailbox credentials are present."""
        return bool(self.imap_user and self.imap_password.get_secret_value())


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
