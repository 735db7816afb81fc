import os
from typing import List
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """
    Application configuration settings using Pydantic Settings.
    Reads from environment variables and provides type safety and validation.
    """
    
    # ─────────────────────────────────────────────────────────────────────────────
    # Version
    # ─────────────────────────────────────────────────────────────────────────────
    VERSION: str = "1.0.0"
    # Also update pyproject.toml (version)

    # ─────────────────────────────────────────────────────────────────────────────
    # Core Settings
    # ─────────────────────────────────────────────────────────────────────────────
    TARGET_HOST: str = Field(default="1.1.1.1", description="Host name or address to ping")
    INTERVAL: float = Field(default=1.0, ge=0.1, description="Ping interval in seconds")
    ADDRESS_STYLE: str = Field(default="any", description="any, ipv4 or ipv6")

    # ─────────────────────────────────────────────────────────────────────────────
    # Probe Settings
    # ─────────────────────────────────────────────────────────────────────────────
    PAYLOAD_SIZE: int = Field(default=56, ge=0, le=65000)
    MAX_OUTSTANDING_REQUESTS: int = Field(default=256, ge=1, le=32768)

    # ─────────────────────────────────────────────────────────────────────────────
    # Resolver Settings
    # ─────────────────────────────────────────────────────────────────────────────
    RESOLVER_BACKEND: str = Field(default="system", description="system or dns")
    DNS_SERVERS: List[str] = Field(default_factory=list)  # empty uses system nameservers
    DNS_TIMEOUT: float = Field(default=2.0, gt=0)

    # ─────────────────────────────────────────────────────────────────────────────
    # Metrics
    # ─────────────────────────────────────────────────────────────────────────────
    ENABLE_METRICS: bool = False
    METRICS_ADDR: str = "127.0.0.1"
    METRICS_PORT: int = Field(default=8000, ge=1, le=65535)

    # ─────────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────────
    LOG_DIR: str = Field(default=os.path.expanduser("~/.echoprobe"))
    LOG_FILE: str = Field(default_factory=lambda: os.path.join(os.path.expanduser("~/.echoprobe"), "echoprobe.log"))
    LOG_LEVEL: str = "INFO"
    LOG_TRUNCATE_ON_START: bool = True

    @field_validator("ADDRESS_STYLE")
    @classmethod
    def _check_address_style(cls, value: str) -> str:
        value = value.lower()
        if value not in ("any", "ipv4", "ipv6"):
            raise ValueError("ADDRESS_STYLE must be one of: any, ipv4, ipv6")
        return value

    @field_validator("RESOLVER_BACKEND")
    @classmethod
    def _check_resolver_backend(cls, value: str) -> str:
        value = value.lower()
        if value not in ("system", "dns"):
            raise ValueError("RESOLVER_BACKEND must be one of: system, dns")
        return value

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )
