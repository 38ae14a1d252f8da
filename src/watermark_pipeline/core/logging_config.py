"""Centralized logging configuration for the watermark pipeline."""

import os
import sys
import logging
from typing import Optional


def setup_logger(
    name: str = "watermark-pipeline",
    level: Optional[str] = None,
    format_type: str = "structured",
) -> logging.Logger:
    """
    Setup centralized logging with environment variable configuration.

    Args:
        name: Logger name (defaults to "watermark-pipeline")
        level: Log level override (defaults to env var or INFO)
        format_type: Logging format ("structured" or "simple")

    Returns:
        Configured logger instance

    Environment Variables:
        LOG_LEVEL: Set logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_FORMAT: Set format type ("structured" or "simple")
    """
    logger = logging.getLogger(name)

    if level:
        log_level = getattr(logging, level.upper(), logging.INFO)
    else:
        env_level = os.getenv("LOG_LEVEL", "INFO").upper()
        log_level = getattr(logging, env_level, logging.INFO)

    logger.setLevel(log_level)

    # Avoid duplicate handlers
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)

        env_format = os.getenv("LOG_FORMAT", format_type).lower()

        if env_format == "structured":
            formatter = logging.Formatter(
                "%(asctime)s | %(name)s | %(levelname)-8s | %(threadName)s | "
                "%(filename)s:%(lineno)d | %(funcName)s() | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        else:
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )

        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_logger(name: str = "watermark-pipeline") -> logging.Logger:
    """
    Get a logger instance with consistent configuration.

    Args:
        name: Logger name

    Returns:
        Configured logger instance
    """
    return setup_logger(name)


def configure_worker_logging() -> logging.Logger:
    """
    Configure the shared logger for background workers.

    Every worker thread logs through the same named logger; the structured
    format carries ``%(threadName)s`` to tell jobs apart.
    """
    return setup_logger("watermark-pipeline.worker")


def set_log_level(level: str) -> None:
    """
    Apply ``level`` to every pipeline logger, existing and future.

    Loggers created later read ``LOG_LEVEL``, so the level is also exported
    to the environment.
    """
    level = level.upper()
    os.environ["LOG_LEVEL"] = level
    for name, existing in logging.Logger.manager.loggerDict.items():
        if name.startswith("watermark-pipeline") and isinstance(existing, logging.Logger):
            existing.setLevel(level)


# Create default logger instance
logger = setup_logger()
