"""Application settings loaded from environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """LifeOS profile strength server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default: the XP ledger has no auth layer in front of it.
    lifeos_host: str = "127.0.0.1"
    lifeos_port: int = 8010
    lifeos_log_level: str = "info"
    lifeos_allow_insecure_bind: bool = False

    # Storage (ledger bank)
    db_path: str = "~/.lifeos/profile_strength.db"

    # Encryption. Empty key -> ephemeral in-memory ledger.
    encryption_key: str = ""
    # Comma-separated retired keys, accepted for decryption only
    encryption_previous_keys: str = ""

    # Data sources
    data_source: Literal["mock", "json_file"] = "mock"
    data_file_path: str = ""
    journal_fetch_limit: int = 60
    checkin_fetch_limit: int = 12

    # Scoring
    strength_config_path: str = ""
    profile_strength_debug: bool = False

    def previous_keys(self) -> list[str]:
        return [k.strip() for k in self.encryption_previous_keys.split(",") if k.strip()]


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
