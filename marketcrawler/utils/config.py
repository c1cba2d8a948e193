"""Configuration management system using Pydantic v2 and YAML.

This module provides type-safe configuration loading with validation
for the market crawler.
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ConfigFileNotFoundError, ConfigurationError


DEFAULT_HEADERS = {"accept-charset": "utf-8"}


class PopularityConfig(BaseModel):
    """Popularity index attached to search results."""

    use: bool = Field(default=False, description="Compute a popularity index for each listing")
    divider: float = Field(default=10000, gt=0, description="Listing quantity divider for the index")


class RequestSettings(BaseModel):
    """Immutable HTTP client defaults shared by every request.

    The crawler swaps the whole value when reconfigured instead of
    mutating it, so a call keeps the settings it started with.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    proxy: Optional[str] = None
    timeout: float = Field(default=5.0, gt=0)
    watchdog_slack: float = Field(default=3.0, ge=0)
    max_redirects: int = Field(default=5, ge=0)
    headers: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_HEADERS))

    @property
    def watchdog_timeout(self) -> float:
        """Wall-clock bound for a whole retry sequence."""
        return self.timeout + self.watchdog_slack


class CrawlerConfig(BaseModel):
    """Configuration for the market crawler."""

    currency: int = Field(default=1, ge=1, description="Steam wallet currency code (1 = USD)")
    country: str = Field(default="US", description="Country code sent with order book requests")
    language: str = Field(default="english", description="Market language")
    timeout: float = Field(default=5.0, gt=0, description="Transport timeout in seconds")
    watchdog_slack: float = Field(default=3.0, ge=0, description="Extra seconds before the watchdog fires")
    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    max_redirects: int = Field(default=5, ge=0, description="Maximum redirects followed per request")
    proxy: Optional[str] = Field(default=None, description="HTTP/HTTPS proxy URL")
    web_proxy: Optional[str] = Field(default=None, description="Web proxy prefix wrapping target URLs")
    base64: bool = Field(default=False, description="Send base64 encoded target URLs through the web proxy")
    base64_prefix: str = Field(default="base64", description="Prefix for base64 encoded URLs")
    popularity: PopularityConfig = Field(default_factory=PopularityConfig)
    request_headers: dict[str, str] = Field(default_factory=dict, description="Extra request headers")

    @field_validator('country')
    @classmethod
    def validate_country(cls, v: str) -> str:
        """Normalize country code to upper case."""
        if len(v) != 2:
            raise ValueError("country must be a two letter code")
        return v.upper()

    def request_settings(self) -> RequestSettings:
        """Build the immutable request defaults for this configuration."""
        headers = dict(DEFAULT_HEADERS)
        headers.update(self.request_headers)
        # the charset header is fixed
        headers.update(DEFAULT_HEADERS)
        return RequestSettings(
            proxy=self.proxy,
            timeout=self.timeout,
            watchdog_slack=self.watchdog_slack,
            max_redirects=self.max_redirects,
            headers=headers,
        )


class AppConfig(BaseModel):
    """Root configuration model."""

    crawler: CrawlerConfig = Field(default_factory=CrawlerConfig)
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: Optional[str] = Field(default=None, description="Directory for rotating log files")

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Choose from: {valid_levels}")
        return v_upper


# Singleton pattern for configuration
_config: Optional[AppConfig] = None


def _default_config_path() -> Path:
    env_config_path = os.environ.get('MARKETCRAWLER_CONFIG')
    if env_config_path:
        return Path(env_config_path)
    project_root = Path(__file__).parent.parent.parent
    return project_root / "config" / "config.yaml"


def load_config(config_path: Optional[Path | str] = None) -> AppConfig:
    """Load and validate configuration from a YAML file.

    Args:
        config_path: Path to configuration file. Defaults to the
                    MARKETCRAWLER_CONFIG env var, then config/config.yaml
                    relative to the project root.

    Returns:
        Validated AppConfig instance. Built-in defaults are used when no
        path was given and the default file does not exist.

    Raises:
        ConfigFileNotFoundError: If an explicitly given file doesn't exist
        ConfigurationError: If the file can't be parsed or is invalid
    """
    explicit = config_path is not None or bool(os.environ.get('MARKETCRAWLER_CONFIG'))
    config_path = Path(config_path) if config_path is not None else _default_config_path()

    if not config_path.exists():
        if explicit:
            raise ConfigFileNotFoundError(
                f"Configuration file not found: {config_path}",
                path=str(config_path),
            )
        return AppConfig()

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config_dict = yaml.safe_load(f) or {}
        return AppConfig.model_validate(config_dict)
    except (yaml.YAMLError, ValidationError) as e:
        raise ConfigurationError(
            f"Invalid configuration in {config_path}: {e}",
            context={"path": str(config_path)},
        ) from e


def get_config(config_path: Optional[Path | str] = None, reload: bool = False) -> AppConfig:
    """Get configuration instance (singleton pattern).

    Args:
        config_path: Path to configuration file (only used on first call or if reload=True)
        reload: Force reload of configuration

    Returns:
        Cached or newly loaded AppConfig instance
    """
    global _config

    if _config is None or reload:
        _config = load_config(config_path)

    return _config


def reset_config() -> None:
    """Reset cached configuration (useful for testing)."""
    global _config
    _config = None
