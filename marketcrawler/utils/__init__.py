"""Utility modules for configuration, logging, and errors."""

from .config import AppConfig, CrawlerConfig, RequestSettings, get_config, load_config, reset_config
from .logger import (
    get_logger,
    log_execution_time,
    set_log_level,
    log_exception,
    configure_logging,
)

__all__ = [
    # Configuration
    "AppConfig",
    "CrawlerConfig",
    "RequestSettings",
    "get_config",
    "load_config",
    "reset_config",
    # Logging
    "get_logger",
    "log_execution_time",
    "set_log_level",
    "log_exception",
    "configure_logging",
]
