"""
Logging configuration for recordmap.

Records carry a ``context`` dict (model, record_id, operation) taken from
the innermost ``log_context`` block of the current asyncio task. Console
output is coloured text or JSON lines; an optional rotating file always
gets JSON lines.
"""

import json
import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
BACKUP_COUNT = 5
DEFAULT_LOG_LEVEL = os.getenv("RECORDMAP_LOG_LEVEL", "INFO")

_current_log_level = DEFAULT_LOG_LEVEL.upper()


class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "where": f"{record.module}:{record.lineno}",
        }
        for attribute, key in (("context", "context"), ("extra_data", "extra")):
            value = getattr(record, attribute, None)
            if value:
                entry[key] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class HumanFormatter(logging.Formatter):
    """Coloured single-line console output with context as key=value pairs."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        color = self.COLORS.get(record.levelname, "")
        line = f"{stamp} {color}{record.levelname[0]}{self.RESET} {record.name}: {record.getMessage()}"

        context = getattr(record, "context", None)
        if context:
            pairs = " ".join(f"{key}={value!r}" for key, value in context.items())
            line += f" [{pairs}]"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class LogContext:
    """Nested logging context, scoped to the current asyncio task."""

    _current_context: ContextVar[dict[str, Any]] = ContextVar("recordmap_log_context", default={})

    def __init__(self, **values: Any):
        self.values = values
        self._token: Token | None = None

    def __enter__(self) -> "LogContext":
        merged = {**LogContext._current_context.get(), **self.values}
        self._token = LogContext._current_context.set(merged)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        if self._token is not None:
            LogContext._current_context.reset(self._token)
            self._token = None

    @classmethod
    def get_context(cls) -> dict[str, Any]:
        return dict(cls._current_context.get())


class ContextFilter(logging.Filter):
    """Attach the active LogContext (plus fixed values) to each record passing a handler."""

    def __init__(self, fixed: dict[str, Any] | None = None):
        super().__init__()
        self.fixed = fixed or {}

    def filter(self, record: logging.LogRecord) -> bool:
        own = getattr(record, "context", None) or {}
        record.context = {**LogContext.get_context(), **self.fixed, **own}
        return True


class RecordMapLogger(logging.Logger):
    """Logger that can stamp the active LogContext onto a record itself."""

    def log_with_context(
        self,
        level: int,
        msg: str,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        if not self.isEnabledFor(level):
            return
        extra = dict(kwargs.pop("extra", None) or {})
        extra["context"] = {**LogContext.get_context(), **(context or {})}
        kwargs.setdefault("stacklevel", 2)
        self._log(level, msg, (), extra=extra, **kwargs)

    def debug_with_context(self, msg: str, context: dict[str, Any] | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("stacklevel", 3)
        self.log_with_context(logging.DEBUG, msg, context, **kwargs)


def setup_logging(
    level: str | None = None,
    enable_console: bool = True,
    json_output: bool = False,
    log_file: str | Path | None = None,
) -> None:
    """
    Setup logging for the recordmap logger tree.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_console: Enable console logging
        json_output: Use structured JSON on the console instead of coloured text
        log_file: Optional path of a rotating log file (always JSON)
    """
    global _current_log_level

    if level:
        _current_log_level = level.upper()
    numeric_level = getattr(logging, _current_log_level, logging.INFO)

    package_logger = logging.getLogger("recordmap")
    package_logger.setLevel(numeric_level)

    for handler in package_logger.handlers[:]:
        if not isinstance(handler, logging.NullHandler):
            package_logger.removeHandler(handler)

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(StructuredFormatter() if json_output else HumanFormatter())
        console_handler.addFilter(ContextFilter())
        console_handler.setLevel(numeric_level)
        package_logger.addHandler(console_handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=MAX_FILE_SIZE,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(StructuredFormatter())
        file_handler.addFilter(ContextFilter())
        file_handler.setLevel(numeric_level)
        package_logger.addHandler(file_handler)


def get_logger(name: str) -> RecordMapLogger:
    """
    Get a logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        RecordMapLogger instance
    """
    manager = logging.Logger.manager
    previous = manager.loggerClass
    manager.setLoggerClass(RecordMapLogger)
    try:
        logger = logging.getLogger(name)
    finally:
        manager.loggerClass = previous
    return logger  # type: ignore


def set_log_level(level: str) -> None:
    """
    Dynamically set the log level.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    global _current_log_level
    _current_log_level = level.upper()
    numeric_level = getattr(logging, _current_log_level, logging.INFO)

    package_logger = logging.getLogger("recordmap")
    package_logger.setLevel(numeric_level)
    for handler in package_logger.handlers:
        handler.setLevel(numeric_level)


def get_log_level() -> str:
    """
    Get the current log level.

    Returns:
        Current log level string
    """
    return _current_log_level


@contextmanager
def log_context(**kwargs: Any):
    """
    Context manager for adding context to logs.

    Usage:
        with log_context(model="post", record_id=3):
            logger.info("Loading record")
    """
    with LogContext(**kwargs):
        yield
