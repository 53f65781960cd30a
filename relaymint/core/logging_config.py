"""
Structured logging configuration for relaymint.

Provides JSON or text logs with a deployment field for correlating every
line of one deployment run (step executors, relay submitter, ledger client).

Environment Variables:
    RELAYMINT_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR) - default: INFO
    RELAYMINT_LOG_FORMAT: Log format (json, text) - default: text

Usage:
    from relaymint.core.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__, deployment="default")
    logger.info("Submitting create operation")
"""

import logging
import os
import sys
from typing import Optional

from pythonjsonlogger.json import JsonFormatter


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Configure root logger.

    Arguments override RELAYMINT_LOG_LEVEL / RELAYMINT_LOG_FORMAT.
    Logs go to stderr so command output on stdout stays clean.
    """
    log_level = (level or os.getenv("RELAYMINT_LOG_LEVEL", "INFO")).upper()
    fmt = (log_format or os.getenv("RELAYMINT_LOG_FORMAT", "text")).lower()

    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    resolved = level_map.get(log_level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(resolved)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(resolved)
    handler.addFilter(DeploymentFilter())

    if fmt == "json":
        formatter = JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s %(deployment)s",
            rename_fields={
                "asctime": "timestamp",
                "name": "logger",
                "levelname": "level",
            },
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s [deployment=%(deployment)s]",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Silence noisy libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name: str, deployment: Optional[str] = None) -> logging.LoggerAdapter:
    """
    Get a logger carrying the deployment key.

    Example:
        logger = get_logger(__name__, deployment="default")
        logger.info("Mint already exists")
        # Output (JSON): {"timestamp": "...", "level": "INFO", "message": "...", "deployment": "default"}
    """
    logger = logging.getLogger(name)
    return logging.LoggerAdapter(logger, {"deployment": deployment or "N/A"})


class DeploymentFilter(logging.Filter):
    """Ensures every record has a deployment field, even without an adapter."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "deployment"):
            record.deployment = "N/A"  # type: ignore
        return True
