"""
Retrying fetch engine with a watchdog timeout.

Wraps a transport with:
- Bounded, immediate retries (no delay, no jitter) on TransportError,
  BadResponseError and unsuccessful JSON bodies
- A wall-clock watchdog around the whole retry sequence, independent
  of the transport's own timeout

Retry state is an explicit value (Pending, Succeeded or Failed) that the
engine loops over; nothing is stored on the engine itself, so concurrent
calls never share state.

Example:
    >>> engine = RetryEngine(HttpTransport())
    >>> body = await engine.fetch_resilient(
    ...     FetchRequest(url, ResponseKind.JSON), max_retries=3, settings=settings
    ... )
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Union

from marketcrawler.utils.config import RequestSettings
from marketcrawler.utils.exceptions import (
    BadResponseError,
    CrawlerError,
    RequestTimeoutError,
    RetriesExhaustedError,
    TransportError,
)
from marketcrawler.utils.logger import get_logger

from .transport import BaseTransport, FetchRequest, ResponseKind

logger = get_logger(__name__)


@dataclass(frozen=True)
class RetryDecision:
    attempt: int
    should_retry: bool


def decide_retry(attempt: int, max_retries: int) -> RetryDecision:
    """Decide whether attempt number ``attempt`` (0-based) may run."""
    return RetryDecision(attempt=attempt, should_retry=attempt <= max_retries)


@dataclass(frozen=True)
class Pending:
    request: FetchRequest


@dataclass(frozen=True)
class Succeeded:
    body: Any


@dataclass(frozen=True)
class Failed:
    cause: CrawlerError
    attempts: int


AttemptState = Union[Pending, Succeeded, Failed]


def is_unsuccessful(body: Any) -> bool:
    """
    Check whether a decoded JSON body signals failure.

    Falsy bodies (absent, empty, ``false`` or ``0``) and bodies carrying
    ``"success": false`` (or ``0``) count as unsuccessful.
    """
    if not body:
        return True
    if isinstance(body, dict) and "success" in body:
        return body["success"] in (False, 0)
    return False


class RetryEngine:
    """
    Runs a FetchRequest through a transport with retries and a watchdog.

    Attributes:
        transport: The single-request transport used for each attempt.
    """

    def __init__(self, transport: BaseTransport):
        self.transport = transport

    async def fetch_resilient(
        self,
        request: FetchRequest,
        max_retries: int,
        settings: RequestSettings,
    ) -> Any:
        """
        Fetch with up to ``max_retries`` retries under the watchdog.

        Args:
            request: First attempt (usually ``attempt == 0``).
            max_retries: Retries allowed after the first attempt.
            settings: Request defaults; ``settings.watchdog_timeout`` bounds
                the entire sequence.

        Returns:
            The response body.

        Raises:
            RetriesExhaustedError: Every attempt failed; wraps the last cause.
            RequestTimeoutError: The watchdog fired first. The in-flight
                attempt is cancelled.
        """
        watchdog = settings.watchdog_timeout
        try:
            return await asyncio.wait_for(
                self._run(request, max_retries, settings),
                timeout=watchdog,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Watchdog fired after {watchdog:.1f}s for {request.url}")
            raise RequestTimeoutError(
                f"Timed out after {watchdog:.1f}s",
                url=request.url,
                timeout=watchdog,
            ) from e

    async def _run(
        self,
        request: FetchRequest,
        max_retries: int,
        settings: RequestSettings,
    ) -> Any:
        state: AttemptState = Pending(request)
        while isinstance(state, Pending):
            state = await self._step(state.request, max_retries, settings)

        if isinstance(state, Failed):
            logger.error(
                f"Giving up on {request.url} after {state.attempts} attempts: {state.cause}"
            )
            raise RetriesExhaustedError(
                f"Max retries exhausted after {state.attempts} attempts",
                url=request.url,
                attempts=state.attempts,
                cause=state.cause,
            ) from state.cause

        return state.body

    async def _step(
        self,
        request: FetchRequest,
        max_retries: int,
        settings: RequestSettings,
    ) -> AttemptState:
        try:
            body = await self.transport.fetch(request, settings)
            if request.kind is ResponseKind.JSON and is_unsuccessful(body):
                raise BadResponseError(url=request.url)
            return Succeeded(body)

        except (TransportError, BadResponseError) as e:
            decision = decide_retry(request.attempt + 1, max_retries)
            if not decision.should_retry:
                return Failed(cause=e, attempts=decision.attempt)

            logger.warning(
                f"Attempt {decision.attempt}/{max_retries + 1} failed for {request.url}: {e}. Retrying"
            )
            return Pending(request.next_attempt())
