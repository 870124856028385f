#!/usr/bin/env python3
"""
settings.py — Centralized, typed settings for the contract exchange engine.

Place at: cdc/core/settings.py
Run from the repo root (folder that contains cdc/).

What this does:
  - Loads configuration from CDC_* environment variables and an optional .env file.
  - Provides strong typing + validation using Pydantic v2 (pydantic-settings).
  - Exposes a cached accessor get_settings() used as the fallback for every
    component that is not handed an explicit value.

Common examples:

  # 1) Read defaults in a test harness:
  from cdc.core.settings import get_settings
  cfg = get_settings()
  print(cfg.stub_host, cfg.stub_port, cfg.pact_dir)

  # 2) Override via env vars or .env file:
  export CDC_STUB_PORT=1234 CDC_PACT_DIR=./pacts CDC_REQUEST_TIMEOUT_SECS=2.5

Notes:
  - CDC_STUB_PORT=0 asks the OS for a free ephemeral port.
  - Explicit constructor arguments always win over settings.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class Settings(BaseSettings):
    # Logging
    log_level: LogLevel = LogLevel.INFO

    # Consumer side (stub server + artifact output)
    consumer_name: str = "consumer"
    provider_name: str = "provider"
    stub_host: str = "127.0.0.1"
    stub_port: int = 0
    pact_dir: Optional[str] = "./pacts"

    # Provider side (verification)
    provider_base_url: str = "http://127.0.0.1:8000"
    request_timeout_secs: float = 5.0
    verify_workers: int = 4

    model_config = SettingsConfigDict(
        env_prefix="CDC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ---------- Validators ----------

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, v):
        # allow "debug" as well as "DEBUG"
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("stub_port")
    @classmethod
    def _port_range(cls, v: int) -> int:
        if not (0 <= v <= 65535):
            raise ValueError("CDC_STUB_PORT must be between 0 and 65535")
        return v

    @field_validator("request_timeout_secs")
    @classmethod
    def _timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("CDC_REQUEST_TIMEOUT_SECS must be > 0")
        return v

    @field_validator("verify_workers")
    @classmethod
    def _workers_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("CDC_VERIFY_WORKERS must be >= 1")
        return v


# ---------- Accessor (cached) ----------

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Cached settings instance. Tests that change CDC_* variables should call
    get_settings.cache_clear() afterwards.
    """
    return Settings()
