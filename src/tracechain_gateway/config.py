"""Application configuration."""

import logging
import os
import re

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")
_CHANNEL_NAME = re.compile(r"^[a-z][a-z0-9-]*$")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    port: int = 3000
    host: str = "0.0.0.0"  # noqa: S104
    channel: str = "tracechannel"
    cc_name: str = "tracecc"
    ledger_url: str = "http://localhost:7080"
    ledger_network: str = "Hyperledger Fabric"
    ledger_timeout_seconds: float = 30.0
    ledger_pool_size: int = 8
    ledger_health_check_seconds: float = 30.0
    session_ttl_seconds: int = 8 * 60 * 60
    live_reconnect_seconds: float = 5.0
    live_queue_size: int = 100
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @field_validator("channel")
    @classmethod
    def _check_channel(cls, value: str) -> str:
        """Ledger channel names must be lowercase and hyphenated."""
        if not _CHANNEL_NAME.match(value):
            raise ValueError("channel must be lowercase letters, digits and hyphens")
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level {value}")
        return level
