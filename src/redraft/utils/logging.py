"""Structured logging setup for Redraft."""

import structlog
from pathlib import Path
from typing import Any
import os


def configure_logging() -> None:
    """
    Configure structlog for JSON logging to ~/.cache/redraft/logs/redraft.log.

    Log level can be controlled via REDRAFT_LOG_LEVEL environment variable:
    - Set to "DEBUG" to see raw model stream lines and every relayed fragment
    - Defaults to "INFO" if not set

    Log levels:
    - DEBUG: Model request payloads, raw stream lines, per-fragment details
    - INFO: Edit/chat request lifecycle, version saves and clears
    - WARNING: Retries, skipped malformed stream units, missing snapshot files
    - ERROR: Terminal stream failures, corrupted version store

    Example:
        # Enable debug logging
        export REDRAFT_LOG_LEVEL=DEBUG
        redraft serve

        # View logs with jq for readability:
        tail -f ~/.cache/redraft/logs/redraft.log | jq .
    """
    log_dir = Path.home() / ".cache" / "redraft" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "redraft.log"

    log_level = os.environ.get("REDRAFT_LOG_LEVEL", "INFO").upper()

    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR"]
    if log_level not in valid_levels:
        log_level = "INFO"

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.WriteLoggerFactory(file=open(log_file, "a")),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of calling module)

    Returns:
        Structured logger instance

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("edit_stream_started", request_id="abc", model="sonnet")
    """
    return structlog.get_logger(name)
