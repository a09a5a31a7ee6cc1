"""
Settings for recordmap.

Defaults every ModelBuilder starts from, overridable through environment
variables prefixed with ``RECORDMAP_``:

    RECORDMAP_DEFAULT_PRIMARY_KEY=uuid
    RECORDMAP_MERGE_POLICY=preserve_dirty
    RECORDMAP_CONCURRENCY_POLICY=reject
"""

from __future__ import annotations

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MergePolicy(str, Enum):
    """How decoded data is applied onto a record that is already mapped."""
    OVERWRITE = "overwrite"
    PRESERVE_DIRTY = "preserve_dirty"


class ConcurrencyPolicy(str, Enum):
    """What happens to a second mutating operation on a busy record."""
    QUEUE = "queue"
    REJECT = "reject"


class RecordMapSettings(BaseSettings):
    """Process-wide defaults for model definitions and logging."""

    model_config = SettingsConfigDict(env_prefix="RECORDMAP_", extra="ignore")

    default_primary_key: str = Field(default="id", min_length=1)
    merge_policy: MergePolicy = MergePolicy.OVERWRITE
    concurrency_policy: ConcurrencyPolicy = ConcurrencyPolicy.QUEUE
    log_level: str = "INFO"
    log_json: bool = False
    definitions_path: str | None = None


_global_settings: RecordMapSettings | None = None


def get_settings() -> RecordMapSettings:
    """Get the global settings, reading the environment on first use."""
    global _global_settings
    if _global_settings is None:
        _global_settings = RecordMapSettings()
    return _global_settings


def set_settings(settings: RecordMapSettings) -> None:
    """Set the global settings."""
    global _global_settings
    _global_settings = settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    global _global_settings
    _global_settings = None


def configure_logging(settings: RecordMapSettings | None = None) -> None:
    """Apply the logging part of the settings to the recordmap logger tree."""
    from recordmap.core.logging_config import setup_logging

    settings = settings or get_settings()
    setup_logging(level=settings.log_level, json_output=settings.log_json)
