"""
Logging configuration for Stashgate.

Provides centralized structured logging setup with JSON output for production
and human-readable output for development. Supports correlation IDs so that
all log lines emitted while serving one request can be tied together.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from structlog.types import EventDict


# Context variable for correlation ID
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def add_correlation_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add correlation ID to log events if present in context.

    Args:
        logger: Logger instance
        method_name: Name of the logging method
        event_dict: Event dictionary to modify

    Returns:
        Modified event dictionary with correlation_id if available
    """
    correlation_id = correlation_id_var.get()
    if correlation_id:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """
    Set correlation ID for the current context.

    Args:
        correlation_id: Optional correlation ID. If None, generates a new UUID.

    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    correlation_id_var.set(correlation_id)
    return correlation_id


def clear_correlation_id() -> None:
    """Clear correlation ID from the current context."""
    correlation_id_var.set(None)


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from context."""
    return correlation_id_var.get()


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    json_format: bool = True,
) -> None:
    """
    Configure structured logging for Stashgate.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to log file. If None, logs only to stderr.
        json_format: If True, use JSON format. If False, use human-readable format.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers to avoid duplicates
    root_logger.handlers.clear()

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        handler: logging.Handler = logging.FileHandler(log_file)
    else:
        handler = logging.StreamHandler(sys.stderr)

    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)

    processors: list = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_correlation_id,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance for a specific module.

    Args:
        name: Logger name (typically __name__ of the module).

    Returns:
        Structured logger instance.
    """
    if name.startswith("stashgate"):
        return structlog.get_logger(name)
    return structlog.get_logger(f"stashgate.{name}")


# Convenience functions for common logging patterns

def log_strategy_outcome(
    logger: structlog.stdlib.BoundLogger,
    strategy: str,
    cache_key: str,
    source: str,
    status: int,
    **kwargs: Any,
) -> None:
    """
    Log how a strategy produced its response.

    Args:
        logger: Logger instance
        strategy: Strategy name ("cache-first" or "network-first")
        cache_key: Canonical key of the request
        source: Where the response came from ("cache", "network", "shell", "synthetic")
        status: HTTP status of the returned response
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "strategy_outcome",
        "strategy": strategy,
        "cache_key": cache_key,
        "source": source,
        "status": status,
    }

    log_data.update(kwargs)

    if source == "synthetic":
        logger.warning("strategy_offline_fallback", **log_data)
    else:
        logger.debug("strategy_outcome", **log_data)


def log_install_failure(
    logger: structlog.stdlib.BoundLogger,
    version: str,
    reason: str,
    failed_key: Optional[str] = None,
    **kwargs: Any,
) -> None:
    """
    Log an aborted install attempt.

    Args:
        logger: Logger instance
        version: Version label being installed
        reason: Reason the install was aborted
        failed_key: Manifest key whose fetch failed, if any
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "install_failure",
        "version": version,
        "reason": reason,
    }

    if failed_key is not None:
        log_data["failed_key"] = failed_key

    log_data.update(kwargs)

    logger.error("install_failure", **log_data)


def log_cleanup_failure(
    logger: structlog.stdlib.BoundLogger,
    generation: str,
    reason: str,
    **kwargs: Any,
) -> None:
    """
    Log a stale generation that could not be deleted during activation.

    Args:
        logger: Logger instance
        generation: Name of the generation that could not be deleted
        reason: Error description
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "cleanup_failure",
        "generation": generation,
        "reason": reason,
    }

    log_data.update(kwargs)

    logger.warning("cleanup_failure", **log_data)


def log_push_dropped(
    logger: structlog.stdlib.BoundLogger,
    reason: str,
    **kwargs: Any,
) -> None:
    """Log a push payload that was dropped without showing a notification."""
    log_data: Dict[str, Any] = {
        "event_type": "push_dropped",
        "reason": reason,
    }

    log_data.update(kwargs)

    logger.info("push_dropped", **log_data)
