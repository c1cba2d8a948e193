"""
HTTP transport for market requests.

Issues exactly one request per call and returns the body as text or as
decoded JSON. Network-level failures raise TransportError; a body that
is not valid JSON raises MalformedBodyError. Retrying is the caller's job.
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional

import aiohttp

from marketcrawler.utils.config import RequestSettings
from marketcrawler.utils.exceptions import MalformedBodyError, TransportError
from marketcrawler.utils.logger import get_logger

logger = get_logger(__name__)


class ResponseKind(str, Enum):
    TEXT = "text"
    JSON = "json"


@dataclass(frozen=True)
class FetchRequest:
    """
    One attempt at fetching a URL.

    A retry never mutates the request; it fetches
    ``request.next_attempt()`` instead.
    """
    url: str
    kind: ResponseKind = ResponseKind.TEXT
    attempt: int = 0

    def next_attempt(self) -> "FetchRequest":
        return replace(self, attempt=self.attempt + 1)


class BaseTransport(ABC):
    """
    Abstract single-request transport.
    """

    @abstractmethod
    async def fetch(self, request: FetchRequest, settings: RequestSettings) -> Any:
        """
        Perform one request.

        Args:
            request: URL, response kind and attempt number.
            settings: Proxy, timeout, redirect and header defaults.

        Returns:
            The body as ``str`` for TEXT requests, decoded JSON otherwise.

        Raises:
            TransportError: Network failure or non-2xx status.
            MalformedBodyError: JSON requested but the body isn't JSON.
        """
        pass


class HttpTransport(BaseTransport):
    """
    aiohttp transport.

    Uses the shared session when one is given (and still open),
    otherwise opens a short-lived session for the request.
    """

    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        self._session = session

    async def fetch(self, request: FetchRequest, settings: RequestSettings) -> Any:
        if self._session is not None and not self._session.closed:
            return await self._fetch(self._session, request, settings)

        async with aiohttp.ClientSession() as session:
            return await self._fetch(session, request, settings)

    async def _fetch(
        self,
        session: aiohttp.ClientSession,
        request: FetchRequest,
        settings: RequestSettings,
    ) -> Any:
        logger.debug(f"GET {request.url} (attempt {request.attempt})")

        try:
            async with session.get(
                request.url,
                headers=settings.headers,
                proxy=settings.proxy,
                timeout=aiohttp.ClientTimeout(total=settings.timeout),
                allow_redirects=settings.max_redirects > 0,
                # aiohttp gives up once the count reaches the limit
                max_redirects=settings.max_redirects + 1,
            ) as response:
                status = response.status
                raw = await response.read()
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"Request timed out after {settings.timeout}s",
                url=request.url,
            ) from e
        except aiohttp.ClientError as e:
            raise TransportError(
                f"Request failed: {e}",
                url=request.url,
                status_code=getattr(e, "status", 0) or None,
            ) from e

        if not 200 <= status < 300:
            raise TransportError(f"HTTP {status}", url=request.url, status_code=status)

        # The market is always treated as UTF-8 whatever the declared charset
        text = raw.decode("utf-8", errors="replace")
        if request.kind is ResponseKind.TEXT:
            return text

        try:
            return json.loads(text)
        except ValueError as e:
            raise MalformedBodyError(url=request.url) from e
