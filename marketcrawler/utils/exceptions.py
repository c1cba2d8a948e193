"""
Custom exception hierarchy for marketcrawler.

Every error raised by the crawler derives from AppException:
- ConfigError: configuration loading and validation
- CrawlerError: fetching, retrying and mapping market pages

Each exception carries:
- Descriptive message
- Error code for programmatic handling
- Context dictionary for debugging

Propagation policy:
- TransportError and BadResponseError are retried by the RetryEngine and
  surface to callers wrapped in RetriesExhaustedError.
- MissingArgumentError and ExtractionError are never retried.

Example:
    >>> from marketcrawler.utils.exceptions import TransportError
    >>> raise TransportError("HTTP 502", url=url, status_code=502)
"""

from __future__ import annotations

from typing import Any, Dict, Optional


# ============================================
# Base Exception
# ============================================


class AppException(Exception):
    """
    Base exception for all marketcrawler errors.

    Attributes:
        message: Human-readable error description.
        code: Error code for programmatic handling.
        context: Dictionary with debugging context.

    Example:
        >>> try:
        ...     raise AppException("Something went wrong", code="APP_001")
        ... except AppException as e:
        ...     print(f"Error {e.code}: {e.message}")
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self._default_code()
        self.context = context or {}
        super().__init__(self.message)

    def _default_code(self) -> str:
        """Generate default error code from class name."""
        # CamelCase -> UPPER_SNAKE_CASE
        name = self.__class__.__name__
        code = ""
        for i, char in enumerate(name):
            if char.isupper() and i > 0:
                code += "_"
            code += char.upper()
        return code

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "context": self.context,
        }


# ============================================
# Configuration Errors
# ============================================


class ConfigError(AppException):
    """Base exception for configuration-related errors."""

    pass


class ConfigFileNotFoundError(ConfigError):
    """
    Raised when an explicitly requested configuration file is missing.

    Example:
        >>> raise ConfigFileNotFoundError(path="/etc/marketcrawler.yaml")
    """

    def __init__(
        self,
        message: str = "Configuration file not found",
        path: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if path:
            context["path"] = path
        super().__init__(message, code="CONFIG_FILE_NOT_FOUND", context=context, **kwargs)


class ConfigurationError(ConfigError):
    """Raised when configuration is invalid or cannot be parsed."""

    def __init__(
        self,
        message: str = "Invalid configuration",
        **kwargs,
    ) -> None:
        super().__init__(message, code="CONFIG_INVALID", **kwargs)


# ============================================
# Crawler Errors
# ============================================


class CrawlerError(AppException):
    """
    Base exception for market crawling errors.

    Raised when there are issues with:
    - HTTP requests
    - Response bodies
    - Page parsing and record mapping
    """

    pass


class TransportError(CrawlerError):
    """
    Raised when a network request fails or returns a non-2xx status.

    Example:
        >>> raise TransportError(
        ...     "Connection reset",
        ...     url="https://steamcommunity.com/market/",
        ...     status_code=None
        ... )
    """

    def __init__(
        self,
        message: str = "Network request failed",
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if url:
            context["url"] = url
        if status_code:
            context["status_code"] = status_code
        self.url = url
        self.status_code = status_code
        super().__init__(message, code="TRANSPORT_ERROR", context=context, **kwargs)


class BadResponseError(CrawlerError):
    """
    Raised when the request succeeded but the body is empty, absent,
    or flagged as unsuccessful by the market.
    """

    def __init__(
        self,
        message: str = "Received bad response from Steam",
        url: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if url:
            context["url"] = url
        self.url = url
        kwargs.setdefault("code", "BAD_RESPONSE")
        super().__init__(message, context=context, **kwargs)


class MalformedBodyError(BadResponseError):
    """Raised when a JSON body cannot be decoded."""

    def __init__(
        self,
        message: str = "Response body is not valid JSON",
        url: Optional[str] = None,
        **kwargs,
    ) -> None:
        super().__init__(message, url=url, code="MALFORMED_BODY", **kwargs)


class RequestTimeoutError(CrawlerError):
    """
    Raised when the watchdog timer expires before the retry sequence ends.

    Example:
        >>> raise RequestTimeoutError(url=url, timeout=8.0)
    """

    def __init__(
        self,
        message: str = "Timed out",
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if url:
            context["url"] = url
        if timeout is not None:
            context["timeout_seconds"] = timeout
        self.url = url
        self.timeout = timeout
        super().__init__(message, code="REQUEST_TIMEOUT", context=context, **kwargs)


class RetriesExhaustedError(CrawlerError):
    """
    Raised when every allowed attempt failed.

    The last underlying failure is kept on ``cause`` and chained as
    ``__cause__`` by the engine.
    """

    def __init__(
        self,
        message: str = "Max retries exhausted",
        url: Optional[str] = None,
        attempts: Optional[int] = None,
        cause: Optional[BaseException] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if url:
            context["url"] = url
        if attempts is not None:
            context["attempts"] = attempts
        if cause is not None:
            context["cause"] = repr(cause)
        self.url = url
        self.attempts = attempts
        self.cause = cause
        super().__init__(message, code="RETRIES_EXHAUSTED", context=context, **kwargs)


class MissingArgumentError(CrawlerError):
    """
    Raised when the caller omits a required identifier.

    Example:
        >>> raise MissingArgumentError(argument="name_id")
    """

    def __init__(
        self,
        message: Optional[str] = None,
        argument: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if argument:
            context["argument"] = argument
        self.argument = argument
        message = message or f"You have to provide the `{argument}` value"
        super().__init__(message, code="MISSING_ARGUMENT", context=context, **kwargs)


class ExtractionError(CrawlerError):
    """
    Raised when a fragment or JSON node lacks a required field.

    Example:
        >>> raise ExtractionError(field="price", record="Listing")
    """

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        record: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if field:
            context["field"] = field
        if record:
            context["record"] = record
        self.field = field
        self.record = record
        if message is None:
            message = f"Missing or malformed field `{field}`"
            if record:
                message += f" in {record}"
        super().__init__(message, code="EXTRACTION_ERROR", context=context, **kwargs)


class DocumentParseError(CrawlerError):
    """Raised when a document cannot be parsed into a tree at all."""

    def __init__(
        self,
        message: str = "Failed to parse document",
        **kwargs,
    ) -> None:
        super().__init__(message, code="DOCUMENT_PARSE", **kwargs)
