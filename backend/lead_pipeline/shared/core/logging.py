"""
Logging Configuration with Correlation ID Support

This module provides:
1. A context variable holding the current request or pipeline run ID
2. A log filter that stamps that ID onto every record
3. Helpers to read and set the ID

Pipeline runs bind their own "run-xxxxxxxx" ID so that log lines from
leads processed concurrently (or inside one bulk request) can be told apart.
"""
import logging
import uuid
from contextvars import ContextVar, Token
from typing import Optional

# Works across await points: each asyncio task gets its own copy of the context
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> Optional[str]:
    """Get the current request's (or pipeline run's) correlation ID."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: Optional[str] = None, prefix: str = "req") -> str:
    """
    Set the correlation ID for the current context.
    If not provided, generates a new one as "<prefix>-<8 hex chars>".

    Returns the correlation ID that was set.
    """
    if correlation_id is None:
        correlation_id = f"{prefix}-{uuid.uuid4().hex[:8]}"
    correlation_id_var.set(correlation_id)
    return correlation_id


def bind_correlation_id(prefix: str = "run") -> Token:
    """
    Bind a fresh "<prefix>-xxxxxxxx" ID until the returned token is passed to
    `correlation_id_var.reset()`.
    """
    return correlation_id_var.set(f"{prefix}-{uuid.uuid4().hex[:8]}")


class CorrelationIdFilter(logging.Filter):
    """Adds `correlation_id` to log records so the formatter can print it."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "no-request"
        return True


def setup_logging(level: int = logging.INFO) -> None:
    """
    Configure the root logger with correlation ID support.

    Format: timestamp | [correlation id] | logger | level | message
    """
    log_format = "%(asctime)s | [%(correlation_id)s] | %(name)s | %(levelname)s | %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    formatter = logging.Formatter(log_format, datefmt=date_format)

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    handler.addFilter(CorrelationIdFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicate logs
    for existing_handler in root_logger.handlers[:]:
        root_logger.removeHandler(existing_handler)

    root_logger.addHandler(handler)

    # Also route uvicorn logs through our format
    for logger_name in ["uvicorn", "uvicorn.access", "uvicorn.error"]:
        uvicorn_logger = logging.getLogger(logger_name)
        uvicorn_logger.handlers = []
        uvicorn_logger.addHandler(handler)
