"""
Exception hierarchy for recordmap.

Every failure that a record operation can produce is one of these types:
- NotFoundError: a single-record read found nothing
- ValidationFailedError: save stopped before storage, carries the ErrorsSet
- StorageError: anything the storage adapter raised
- RuleError: an encode/decode/validate function raised
- UsageError: programmer error, raised synchronously before async work
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from recordmap.validation.errors import ErrorsSet

logger = logging.getLogger(__name__)


class ErrorSeverity(str, Enum):
    """Error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """Error categories."""
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    STORAGE = "storage"
    RULE = "rule"
    USAGE = "usage"


class RecordMapError(Exception):
    """Base exception for recordmap errors."""

    category: ErrorCategory = ErrorCategory.STORAGE
    severity: ErrorSeverity = ErrorSeverity.MEDIUM

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        severity: ErrorSeverity | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if severity is not None:
            self.severity = severity
        self.timestamp = datetime.now()

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class NotFoundError(RecordMapError):
    """A single-record read found no matching record."""

    category = ErrorCategory.NOT_FOUND
    severity = ErrorSeverity.LOW

    def __init__(
        self,
        message: str,
        model: str | None = None,
        record_id: Any = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {}) or {}
        if model:
            details["model"] = model
        if record_id is not None:
            details["record_id"] = record_id

        super().__init__(message=message, details=details, **kwargs)
        self.record_id = record_id


class ValidationFailedError(RecordMapError):
    """Raised by save when the record's validators report errors."""

    category = ErrorCategory.VALIDATION
    severity = ErrorSeverity.LOW

    def __init__(self, errors: ErrorsSet, model: str | None = None) -> None:
        details: dict[str, Any] = {"errors": errors.to_dict()}
        if model:
            details["model"] = model

        super().__init__(
            message=f"Validation failed: {errors.full_messages()}",
            details=details,
        )
        self.errors = errors


class StorageError(RecordMapError):
    """An error surfaced by the storage adapter."""

    category = ErrorCategory.STORAGE
    severity = ErrorSeverity.HIGH

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        storage_key: str | None = None,
        cause: BaseException | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {}) or {}
        if operation:
            details["operation"] = operation
        if storage_key:
            details["storage_key"] = storage_key
        if cause is not None:
            details["original_type"] = type(cause).__name__

        super().__init__(message=message, details=details, **kwargs)
        self.cause = cause


class RuleError(RecordMapError):
    """An exception raised from a user-supplied encode/decode/validate function."""

    category = ErrorCategory.RULE
    severity = ErrorSeverity.HIGH

    def __init__(
        self,
        message: str,
        key: str | None = None,
        phase: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {}) or {}
        if key:
            details["key"] = key
        if phase:
            details["phase"] = phase

        super().__init__(message=message, details=details, **kwargs)
        self.key = key
        self.phase = phase


class UsageError(RecordMapError):
    """Programmer error, detected before any asynchronous work begins."""

    category = ErrorCategory.USAGE
    severity = ErrorSeverity.MEDIUM


class DefinitionError(UsageError):
    """Invalid model definition (unknown codec, silent override, bad parent)."""


class InvalidStateError(UsageError):
    """Operation not allowed from the record's current lifecycle state."""

    def __init__(self, message: str, state: str | None = None, **kwargs: Any) -> None:
        details = kwargs.pop("details", {}) or {}
        if state:
            details["state"] = state
        super().__init__(message=message, details=details, **kwargs)
        self.state = state


class ConcurrentOperationError(UsageError):
    """A second mutating operation was started while one is in flight."""


_LOG_LEVELS = {
    ErrorSeverity.LOW: logging.DEBUG,
    ErrorSeverity.MEDIUM: logging.WARNING,
    ErrorSeverity.HIGH: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


def wrap_storage_error(
    error: BaseException,
    operation: str,
    storage_key: str | None = None,
) -> RecordMapError:
    """Pass recordmap errors through; wrap anything else as StorageError."""
    if isinstance(error, RecordMapError):
        return error
    wrapped = StorageError(
        message=str(error) or type(error).__name__,
        operation=operation,
        storage_key=storage_key,
        cause=error,
    )
    wrapped.__cause__ = error
    return wrapped


def log_error(error: RecordMapError, operation: str | None = None) -> None:
    """Log an error once, at the level implied by its severity."""
    level = _LOG_LEVELS.get(error.severity, logging.ERROR)
    prefix = f"{operation} " if operation else ""
    logger.log(
        level,
        f"{prefix}[{error.category.value}] {error.message}",
        extra={"extra_data": error.details},
    )
