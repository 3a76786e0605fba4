"""
Structured logging configuration for procflow.

Provides JSON-formatted logs with process_id support for correlating
replays, action executions and commands of one process.

Environment Variables:
    PROCFLOW_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR) - default: INFO
    PROCFLOW_LOG_FORMAT: Log format (json, text) - default: json

Usage:
    from procflow.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__, process_id="order-12345")
    logger.info("Replaying process")
"""

import logging
import os
import sys
from typing import Optional

from pythonjsonlogger.json import JsonFormatter


LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


class ProcessIdFilter(logging.Filter):
    """
    Logging filter that adds process_id to all log records.

    Ensures every record has the field even when not logged through
    a LoggerAdapter.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "process_id"):
            record.process_id = "N/A"  # type: ignore
        return True


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """
    Configure root logger with structured logging.

    Arguments override PROCFLOW_LOG_LEVEL / PROCFLOW_LOG_FORMAT.
    """
    log_level = (level or os.getenv("PROCFLOW_LOG_LEVEL", "INFO")).upper()
    log_format = (fmt or os.getenv("PROCFLOW_LOG_FORMAT", "json")).lower()

    lvl = LEVELS.get(log_level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(lvl)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(lvl)
    handler.addFilter(ProcessIdFilter())

    if log_format == "json":
        formatter: logging.Formatter = JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s %(process_id)s",
            rename_fields={
                "asctime": "timestamp",
                "name": "logger",
                "levelname": "level",
            },
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s [process_id=%(process_id)s]",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)


def get_logger(name: str, process_id: Optional[str] = None) -> logging.LoggerAdapter:
    """
    Get a logger carrying process_id for correlation.

    Example:
        logger = get_logger(__name__, process_id="order-12345")
        logger.warning("Action failed")
        # {"timestamp": "...", "level": "WARNING", "message": "Action failed", "process_id": "order-12345"}
    """
    logger = logging.getLogger(name)
    return logging.LoggerAdapter(logger, {"process_id": process_id or "N/A"})
