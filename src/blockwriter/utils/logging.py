"""Structured logging setup for Blockwriter."""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import structlog


def configure_logging(log_dir: Optional[Path] = None) -> Path:
    """
    Configure structlog for JSON logging to ~/.cache/blockwriter/logs/blockwriter.log.

    Log level can be controlled via BLOCKWRITER_LOG_LEVEL environment variable:
    - Set to "DEBUG" to see every block mutation and timer transition
    - Defaults to "INFO" if not set

    Log levels:
    - DEBUG: Block mutations, timer scheduling, gateway requests
    - INFO: Saves, publishes, session open/close
    - WARNING: Unknown block ids, skipped autosaves, retryable failures
    - ERROR: Persistence failures

    Example:
        # Enable debug logging
        export BLOCKWRITER_LOG_LEVEL=DEBUG
        blockwriter show ch1

        # View logs with jq for readability:
        tail -f ~/.cache/blockwriter/logs/blockwriter.log | jq .

    Args:
        log_dir: Directory for the log file (default: ~/.cache/blockwriter/logs)

    Returns:
        Path of the log file being written
    """
    if log_dir is None:
        log_dir = Path.home() / ".cache" / "blockwriter" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "blockwriter.log"

    log_level = os.environ.get("BLOCKWRITER_LOG_LEVEL", "INFO").upper()

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
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, log_level)),
        context_class=dict,
        logger_factory=structlog.WriteLoggerFactory(file=open(log_file, "a")),
        cache_logger_on_first_use=True,
    )
    return log_file


def get_logger(name: str) -> Any:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of calling module)

    Returns:
        Structured logger instance

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("chapter_saved", chapter_id="ch1", word_count=120)
    """
    return structlog.get_logger(name)
