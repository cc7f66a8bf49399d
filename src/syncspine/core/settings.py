"""
Centralized settings for syncspine.

Manifesto:
    One validated, cached settings object holds every knob of a fetch run:
    where the store lives, how many resolvers may run at once, how much a
    resolver may buffer ahead of storage, and what happens when a resolver
    fails.  Values come from ``SYNCSPINE_*`` environment variables or a
    ``.env`` file and are validated at startup, not mid-run.

Examples:
    >>> import os
    >>> os.environ["SYNCSPINE_PARALLEL_FETCHING_LIMIT"] = "8"
    >>> get_settings.cache_clear()
    >>> get_settings().parallel_fetching_limit
    8

Tags:
    settings, configuration, pydantic, environment, syncspine

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ErrorPolicy(str, Enum):
    """What a non-ignored resolver error does to the rest of the run.

    ISOLATE_SUBTREE: the failing table's subtree is skipped, every other
        branch keeps resolving and the run ends ``PARTIAL``.
    ABORT_RUN: all in-flight resolvers are cancelled; tables that already
        synced stay committed and the run ends ``FAILED``.
    """

    ISOLATE_SUBTREE = "isolate_subtree"
    ABORT_RUN = "abort_run"


class SyncSettings(BaseSettings):
    """syncspine configuration.

    Fields
    ──────
    database_url            : SQLAlchemy URL of the relational store
    database_echo           : Log every SQL statement
    parallel_fetching_limit : Max concurrent resolver invocations (0 = unbounded)
    result_buffer_size      : Bounded queue size between a resolver and the engine
    error_policy            : ISOLATE_SUBTREE or ABORT_RUN
    insert_fallback         : Retry a failed bulk copy row by row
    fetch_timeout_seconds   : Deadline for a whole fetch run (None = no deadline)
    log_level / log_format  : structlog configuration
    """

    model_config = SettingsConfigDict(
        env_prefix="SYNCSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Database ─────────────────────────────────────────────────
    database_url: str = Field(default="sqlite:///data/syncspine.db")
    database_echo: bool = Field(default=False)

    # ── Fetch ────────────────────────────────────────────────────
    parallel_fetching_limit: int = Field(default=0, ge=0)
    result_buffer_size: int = Field(default=1000, ge=1)
    error_policy: ErrorPolicy = Field(default=ErrorPolicy.ISOLATE_SUBTREE)
    insert_fallback: bool = Field(default=False)
    fetch_timeout_seconds: float | None = Field(default=None, gt=0)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json", description="json or console")

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        value = value.upper()
        if value not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"invalid log level: {value}")
        return value

    @field_validator("log_format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        value = value.lower()
        if value not in {"json", "console"}:
            raise ValueError(f"invalid log format: {value}")
        return value


@lru_cache(maxsize=1)
def get_settings() -> SyncSettings:
    """Return the process-wide settings (cached)."""
    return SyncSettings()


__all__ = ["ErrorPolicy", "SyncSettings", "get_settings"]
