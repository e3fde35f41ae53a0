"""
Logger Configuration Module

Provides a centralized logging configuration for the Union Cohort project.
All module loggers live under the ``union_cohort`` namespace and share the
handlers installed on it, in the main process and in estimation workers.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from union_cohort.utils.config_manager import ConfigManager


PROJECT_LOGGER = "union_cohort"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(
    name: str = PROJECT_LOGGER,
    level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None
) -> logging.Logger:
    """
    Set up and configure a logger.

    Args:
        name: Logger name
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file
        log_format: Optional custom log format string

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Replace handlers from an earlier setup
    logger.handlers.clear()

    formatter = logging.Formatter(log_format or DEFAULT_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(logging.DEBUG)  # Log everything to file
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def configure_logging(config: ConfigManager, verbose: bool = False) -> logging.Logger:
    """
    Configure the project logger from the ``logging`` config section.

    Args:
        config: Loaded configuration
        verbose: Force DEBUG regardless of ``logging.level``

    Returns:
        The project logger
    """
    level = 'DEBUG' if verbose else config.get('logging.level', 'INFO')
    return setup_logger(
        PROJECT_LOGGER,
        level,
        log_file=config.get('logging.file'),
        log_format=config.get('logging.format'),
    )


def current_level(name: str = PROJECT_LOGGER) -> str:
    """Effective level name of a logger, e.g. ``'INFO'``."""
    return logging.getLevelName(logging.getLogger(name).getEffectiveLevel())


def init_worker_logging(level: str) -> None:
    """
    ProcessPoolExecutor initializer giving workers the parent's level.

    Workers log to the console only; the log file belongs to the parent.
    """
    setup_logger(PROJECT_LOGGER, level)


def get_logger(name: str = PROJECT_LOGGER) -> logging.Logger:
    """
    Get an existing logger or create a new one.

    Args:
        name: Logger name

    Returns:
        logging.Logger: Logger instance
    """
    logger = logging.getLogger(name)

    # Module loggers inherit the project handlers through propagation
    if not logger.hasHandlers():
        return setup_logger(name)

    return logger


# Create default project logger
project_logger = setup_logger()
