"""Structured logging utilities for keyrotation.

This module provides structured logging using structlog. A redaction processor
masks credential values before any renderer sees them, so a key passed as a
log field is never written in full.
"""

import logging
import sys
import time
from typing import Optional

import structlog
from structlog.types import EventDict, Processor

from keyrotation.utils.masking import mask_credential

# Event-dict keys whose values are always credentials
_CREDENTIAL_FIELDS = frozenset({"api_key", "credential", "key"})


def redact_credentials(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask string values stored under credential field names."""
    for name in _CREDENTIAL_FIELDS.intersection(event_dict):
        value = event_dict[name]
        if isinstance(value, str):
            event_dict[name] = mask_credential(value)
    return event_dict


def add_timestamp(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add epoch timestamp to log entries."""
    event_dict["timestamp"] = time.time()
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = True
) -> None:
    """Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON format. If False, use console format.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        redact_credentials,
        add_timestamp,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        # Pretty console output for development
        processors.extend([
            structlog.dev.ConsoleRenderer(colors=True),
        ])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = "keyrotation") -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance.

    Args:
        name: Logger name (typically module name)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


# Initialize logging with sensible defaults
# This will be reconfigured by main.py based on environment
configure_logging()
