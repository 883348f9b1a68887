"""
Structured JSON logging infrastructure for CreditKit.

This module provides standardized JSON logging with credit and document
context, compatible with log aggregation services like CloudWatch, ELK,
and DataDog.

Example usage:
    >>> from core.logging import get_logger, setup_logging
    >>> setup_logging()
    >>> logger = get_logger(__name__)
    >>> logger.info("Evaluation started", extra={"credit_id": "EACr6"})
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.policy import get_settings

# LogRecord attributes that are not user context
_RESERVED_ATTRS = frozenset([
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'taskName', 'message', 'asctime',
])


class JSONFormatter(logging.Formatter):
    """
    Custom JSON formatter for structured logging.

    Formats log records as JSON with consistent fields for log aggregation.
    Includes timestamp, level, message, and additional context fields.

    Example:
        >>> formatter = JSONFormatter()
        >>> handler = logging.StreamHandler()
        >>> handler.setFormatter(formatter)
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON string.

        Args:
            record: Python logging record to format

        Returns:
            JSON formatted log string
        """
        log_entry: Dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        # Credit context first so it lines up across records
        if hasattr(record, 'credit_id'):
            log_entry["credit_id"] = record.credit_id

        if hasattr(record, 'document'):
            log_entry["document"] = record.document

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in log_entry:
                continue
            log_entry[key] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_logging(
    level: Optional[str] = None,
    format_type: Optional[str] = None,
    logger_name: Optional[str] = None
) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL);
            defaults to CREDITKIT_LOG_LEVEL
        format_type: Log format type ("json" or "text"); defaults to
            CREDITKIT_LOG_FORMAT
        logger_name: Specific logger to configure (None for root)

    Example:
        >>> setup_logging(level="DEBUG", format_type="json")
        >>> logger = get_logger(__name__)
        >>> logger.info("Catalog loaded")
    """
    settings = get_settings()
    level = level or settings['log_level']
    format_type = format_type or settings['log_format']

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    if format_type.lower() == "json":
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # stderr keeps stdout clean for CLI JSON output
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.setLevel(numeric_level)

    if logger_name:
        logger = logging.getLogger(logger_name)
    else:
        logger = logging.getLogger()

    # Clear existing handlers to avoid duplicates
    logger.handlers.clear()

    logger.addHandler(handler)
    logger.setLevel(numeric_level)

    if logger_name:
        logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Logger name (typically __name__ from calling module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    credit_id: Optional[str] = None,
    document: Optional[str] = None,
    **kwargs
) -> None:
    """
    Log message with credit and document context.

    Args:
        logger: Logger instance to use
        level: Log level (info, warning, error, etc.)
        message: Log message
        credit_id: Credit being processed
        document: Source document label
        **kwargs: Additional context fields

    Example:
        >>> logger = get_logger(__name__)
        >>> log_with_context(logger, "warning", "Malformed entry", credit_id="EACr6",
        ...                  document="Equipment Schedule")
    """
    extra_fields = dict(kwargs)

    if credit_id is not None:
        extra_fields['credit_id'] = credit_id
    if document is not None:
        extra_fields['document'] = document

    log_method = getattr(logger, level.lower(), logger.info)
    log_method(message, extra=extra_fields)
