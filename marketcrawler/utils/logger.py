"""Structured logging configuration for marketcrawler.

This module provides colored console logging and optional rotating file
logging with timing utilities.
"""

import logging
import os
import time
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

import colorlog


CONSOLE_FORMAT_COLOR = "%(log_color)s%(levelname)-8s%(reset)s %(blue)s%(name)s%(reset)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_FILE_NAME = "marketcrawler.log"


def _setup_console_handler(level: int) -> logging.Handler:
    """Create a colored console handler.

    Args:
        level: Logging level

    Returns:
        Configured console handler
    """
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    formatter = colorlog.ColoredFormatter(
        CONSOLE_FORMAT_COLOR,
        datefmt=DATE_FORMAT,
        log_colors={
            'DEBUG': 'cyan',
            'INFO': 'green',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'red,bg_white',
        }
    )

    console_handler.setFormatter(formatter)
    return console_handler


def _setup_file_handler(level: int, log_dir: Path) -> logging.Handler:
    """Create and configure rotating file handler.

    Args:
        level: Logging level
        log_dir: Directory for log files

    Returns:
        Configured rotating file handler
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    # max 10MB, keep 5 backup files
    file_handler = RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))

    return file_handler


def get_logger(name: str, log_dir: Optional[Path] = None, level: Optional[str] = None) -> logging.Logger:
    """Get or create a logger with console and optional file handlers.

    Args:
        name: Logger name (typically __name__ from calling module)
        log_dir: Directory for log files. If None, uses the
              MARKETCRAWLER_LOG_DIR environment variable; file logging is
              disabled when neither is set.
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
              If None, uses MARKETCRAWLER_LOG_LEVEL environment variable, defaulting to INFO.

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Only configure once per logger name
    if not logger.handlers:
        if level is not None:
            log_level_str = level.upper()
        else:
            log_level_str = os.environ.get('MARKETCRAWLER_LOG_LEVEL', 'INFO').upper()
        log_level = getattr(logging, log_level_str, logging.INFO)

        logger.setLevel(log_level)
        logger.addHandler(_setup_console_handler(log_level))

        if log_dir is None and os.environ.get('MARKETCRAWLER_LOG_DIR'):
            log_dir = Path(os.environ['MARKETCRAWLER_LOG_DIR'])
        if log_dir is not None:
            logger.addHandler(_setup_file_handler(log_level, Path(log_dir)))

        logger.propagate = False

    return logger


@contextmanager
def log_execution_time(logger: logging.Logger, operation: str):
    """Context manager to log how long an operation took.

    Args:
        logger: Logger instance
        operation: Name of the operation

    Usage:
        with log_execution_time(logger, "search"):
            listings = await crawler.search(params)
    """
    logger.debug(f"Starting: {operation}")
    start_time = time.time()

    try:
        yield
    finally:
        duration = time.time() - start_time
        logger.debug(f"Completed: {operation} in {duration:.3f}s")


def set_log_level(logger: logging.Logger, level: str) -> None:
    """Change the log level of a logger and all its handlers.

    Args:
        logger: Logger instance
        level: New log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level_upper = level.upper()
    log_level = getattr(logging, level_upper, logging.INFO)

    logger.setLevel(log_level)
    for handler in logger.handlers:
        handler.setLevel(log_level)

    logger.info(f"Log level changed to {level_upper}")


def log_exception(logger: logging.Logger, operation: str, exception: Exception) -> None:
    """Log an exception with context.

    Args:
        logger: Logger instance
        operation: Name of the operation that failed
        exception: The exception that was raised
    """
    context = getattr(exception, 'context', None)
    if context:
        logger.error(f"Failed: {operation} ({context})", exc_info=exception)
    else:
        logger.error(f"Failed: {operation}", exc_info=exception)


def configure_logging(level: str, log_dir: Optional[Path] = None) -> None:
    """Apply a level (and optional file logging) to every marketcrawler logger.

    Args:
        level: New log level for all package loggers
        log_dir: Directory for the rotating log file, if any
    """
    for name in list(logging.root.manager.loggerDict):
        if not name.startswith('marketcrawler'):
            continue
        logger = logging.getLogger(name)
        if not logger.handlers:
            continue

        if log_dir is not None and not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
            logger.addHandler(_setup_file_handler(logger.level, Path(log_dir)))
        set_log_level(logger, level)
