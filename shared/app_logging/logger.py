"""
Standardized logging utilities for the Daily Digest services.
Provides structured logging with correlation IDs and consistent formatting.
"""

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

from shared.config.settings import get_settings

# Context variable for correlation ID
correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)

# Component namespaces that may run inside any service process
SHARED_LOGGER_NAMES = ("shared", "collector", "analyzer", "composer", "scheduler")

_RESERVED_ATTRS = frozenset([
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'taskName', 'message',
    'exc_info', 'exc_text', 'stack_info', 'correlation_id', 'service_name',
])


class CorrelationIDFilter(logging.Filter):
    """Logging filter to add correlation ID and service name to log records."""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get() or "no-correlation-id"
        record.service_name = self.service_name
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, 'correlation_id', 'no-correlation-id'),
            "service": getattr(record, 'service_name', 'unknown'),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        # anything passed through ``extra=``
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class StructuredFormatter(logging.Formatter):
    """Structured formatter for human-readable logs."""

    def format(self, record: logging.LogRecord) -> str:
        correlation_id = getattr(record, 'correlation_id', 'no-correlation-id')
        service = getattr(record, 'service_name', 'unknown')

        # Format: [timestamp] [level] [service] [correlation_id] logger: message
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]

        base_msg = f"[{timestamp}] [{record.levelname}] [{service}] [{correlation_id}] {record.name}: {record.getMessage()}"

        if record.exc_info:
            base_msg += f"\n{self.formatException(record.exc_info)}"

        return base_msg


def setup_logging(
    service_name: str,
    log_level: Optional[str] = None,
    json_logs: Optional[bool] = None,
) -> logging.Logger:
    """
    Set up standardized logging for a service.

    Args:
        service_name: Name of the service (e.g., 'collector', 'composer')
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Whether to use JSON formatting

    Returns:
        Configured logger instance
    """
    settings = get_settings()

    level = (log_level or settings.logging.level).upper()
    use_json = json_logs if json_logs is not None else settings.logging.json_logs

    handler = logging.StreamHandler()
    handler.setLevel(getattr(logging, level))
    handler.setFormatter(JSONFormatter() if use_json else StructuredFormatter())
    if settings.logging.include_correlation_id:
        handler.addFilter(CorrelationIDFilter(service_name))

    logger = logging.getLogger(service_name)
    for name in dict.fromkeys((service_name,) + SHARED_LOGGER_NAMES):
        target = logging.getLogger(name)
        target.setLevel(getattr(logging, level))
        # Remove existing handlers to avoid duplicates
        for old in target.handlers[:]:
            target.removeHandler(old)
        target.addHandler(handler)
        target.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a service component."""
    return logging.getLogger(name)


class CorrelationContext:
    """Run a block under one correlation id; a fresh one is made when none is given.

    The HTTP middleware uses the caller's ``X-Request-ID``; the scheduler opens
    one context per user so a sweep's log lines can be split apart.
    """

    def __init__(self, correlation_id: Optional[str] = None):
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self._token = None

    def __enter__(self) -> str:
        self._token = correlation_id_var.set(self.correlation_id)
        return self.correlation_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        correlation_id_var.reset(self._token)
