"""
Structured logging configuration.
Every module logs through ``get_logger`` so extra fields render as ``key=value``.
"""

import logging
import sys
from typing import Any, Dict, Optional

from retail_dashboard.core.config import settings


_RESERVED_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
    "timestamp",
}

NOISY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "uvicorn.access")


class StructuredLogger:
    """Logger com contexto fixo opcional (ex.: geração do refresh)."""

    def __init__(self, name: str, context: Optional[Dict[str, Any]] = None):
        self.logger = logging.getLogger(name)
        self.context = dict(context or {})

    def bind(self, **context) -> "StructuredLogger":
        """Return a logger that adds ``context`` to every record."""
        return StructuredLogger(self.logger.name, {**self.context, **context})

    def _log(self, level: int, message: str, exc: Optional[BaseException], fields: Dict[str, Any]) -> None:
        if not self.logger.isEnabledFor(level):
            return
        self.logger.log(level, message, exc_info=exc, extra={**self.context, **fields})

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, None, kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, None, kwargs)

    def warning(self, message: str, exc: Optional[BaseException] = None, **kwargs):
        self._log(logging.WARNING, message, exc, kwargs)

    def error(self, message: str, exc: Optional[BaseException] = None, **kwargs):
        """Log error message; ``exc`` attaches the traceback."""
        self._log(logging.ERROR, message, exc, kwargs)


class StructuredFormatter(logging.Formatter):
    """``[time] LEVEL logger: message | key=value | ...``"""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = self.formatTime(record, self.default_time_format)
        line = f"[{timestamp}] {record.levelname} {record.name}: {record.getMessage()}"

        extra_fields = [
            f"{key}={value}"
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        ]
        if extra_fields:
            line = f"{line} | {' | '.join(extra_fields)}"

        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _handler(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def configure_logging(
    level: str = "INFO",
    structured: bool = True,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        structured: ``key=value`` extras when true, plain stdlib format otherwise
        log_file: also write to this file when given
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(numeric_level)

    if structured:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    root_logger.addHandler(_handler(logging.StreamHandler(sys.stdout), numeric_level, formatter))
    if log_file:
        root_logger.addHandler(_handler(logging.FileHandler(log_file), numeric_level, formatter))

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)


app_logger = get_logger("retail_dashboard")


def init_app_logging():
    """Initialize application logging based on settings."""
    log_file = settings.LOG_FILE_PATH if settings.LOG_TO_FILE else None
    configure_logging(level=settings.LOG_LEVEL, log_file=log_file)
    app_logger.info(
        "Application logging initialized",
        level=settings.LOG_LEVEL,
        log_file=log_file,
        record_source=settings.RECORD_SOURCE,
    )
