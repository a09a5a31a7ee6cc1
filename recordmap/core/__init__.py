"""Core utilities for recordmap."""

from recordmap.core.config import (
    ConcurrencyPolicy,
    MergePolicy,
    RecordMapSettings,
    configure_logging,
    get_settings,
    reset_settings,
    set_settings,
)
from recordmap.core.exceptions import (
    ConcurrentOperationError,
    DefinitionError,
    InvalidStateError,
    NotFoundError,
    RecordMapError,
    RuleError,
    StorageError,
    UsageError,
    ValidationFailedError,
)
from recordmap.core.logging_config import (
    LogContext,
    get_log_level,
    get_logger,
    log_context,
    set_log_level,
    setup_logging,
)

__all__ = [
    "ConcurrencyPolicy",
    "MergePolicy",
    "RecordMapSettings",
    "configure_logging",
    "get_settings",
    "reset_settings",
    "set_settings",
    "ConcurrentOperationError",
    "DefinitionError",
    "InvalidStateError",
    "NotFoundError",
    "RecordMapError",
    "RuleError",
    "StorageError",
    "UsageError",
    "ValidationFailedError",
    "LogContext",
    "get_log_level",
    "get_logger",
    "log_context",
    "set_log_level",
    "setup_logging",
]
