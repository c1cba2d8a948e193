"""
Steam Community Market crawler.

Public entry point that composes:
- Endpoint builders (URL construction, proxy wrapping)
- RetryEngine (bounded retries + watchdog timeout)
- Fragment extraction for HTML responses
- MarketParser record mapping

Every operation is one linear pipeline with a single suspension point,
the resilient fetch:

    build URL -> fetch -> [extract rows] -> map -> record(s)

Example:
    >>> async with MarketCrawler() as crawler:
    ...     listings = await crawler.search(SearchParams(query="AK-47", app_id=730))
    ...     item = await crawler.get_listing(730, listings[0].market_hash_name, load_histogram=True)
    ...     print(item.histogram.lowest_sell_order)
"""

from __future__ import annotations

from typing import Any, Optional

import aiohttp
from pydantic import ValidationError

from marketcrawler.utils.config import CrawlerConfig, RequestSettings, get_config
from marketcrawler.utils.exceptions import (
    AppException,
    ConfigurationError,
    ExtractionError,
    MissingArgumentError,
)
from marketcrawler.utils.logger import get_logger, log_execution_time

from . import endpoints
from .currency import Currency
from .endpoints import Endpoint, Locale, SalesParams, SearchParams
from .extractor import extract_fragments, parse_document
from .models import ActivityFeed, Histogram, Listing, ListingItem, ListingSale, RecentActivity
from .parsers import MarketParser
from .retry import RetryEngine
from .transport import BaseTransport, FetchRequest, HttpTransport, ResponseKind

logger = get_logger(__name__)


class MarketCrawler:
    """
    Async client for the Steam Community Market.

    Request defaults live in an immutable RequestSettings value. The
    configuration mutators replace that value instead of changing it, and
    every operation reads it once when it starts, so reconfiguring only
    affects calls started afterwards.

    Attributes:
        config: Crawler configuration.
        parser: Record mapper.
        engine: Retry/timeout engine around the transport.
    """

    def __init__(
        self,
        config: Optional[CrawlerConfig] = None,
        transport: Optional[BaseTransport] = None,
    ):
        """
        Initialize the crawler.

        Args:
            config: Crawler configuration. If None, uses the loaded app config.
            transport: Single-request transport. If None, uses HttpTransport.
        """
        self.config = config or get_config().crawler
        self.parser = MarketParser()
        self._owns_transport = transport is None
        self.engine = RetryEngine(transport or HttpTransport())
        self._settings = self.config.request_settings()
        self._session: Optional[aiohttp.ClientSession] = None

        logger.info(
            f"MarketCrawler initialized: currency={self.currency.name}, "
            f"max_retries={self.config.max_retries}, timeout={self.config.timeout}s"
        )

    # =========================================
    # Context Manager
    # =========================================

    async def __aenter__(self) -> "MarketCrawler":
        if self._owns_transport and self._session is None:
            self._session = aiohttp.ClientSession()
            self.engine = RetryEngine(HttpTransport(self._session))
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the shared HTTP session, if one is open."""
        if self._session is not None:
            await self._session.close()
            self._session = None
            self.engine = RetryEngine(HttpTransport())

    # =========================================
    # Configuration
    # =========================================

    @property
    def settings(self) -> RequestSettings:
        """Current request defaults."""
        return self._settings

    @property
    def currency(self) -> Currency:
        return Currency(self.config.currency)

    @property
    def locale(self) -> Locale:
        return Locale(
            country=self.config.country,
            language=self.config.language,
            currency=self.currency,
        )

    def set_proxy(self, proxy: Optional[str]) -> None:
        """Route later requests through ``proxy`` (None disables it)."""
        self.config = self.config.model_copy(update={"proxy": proxy})
        self._settings = self._settings.model_copy(update={"proxy": proxy})
        logger.info(f"Proxy set to {proxy}")

    def set_defaults(self, **options: Any) -> None:
        """
        Replace the request defaults.

        Accepts any RequestSettings field (proxy, timeout, watchdog_slack,
        max_redirects, headers). Extra headers are merged over the fixed
        ``accept-charset: utf-8`` header.
        """
        headers = dict(self._settings.headers)
        headers.update(options.pop("headers", None) or {})
        headers["accept-charset"] = "utf-8"
        try:
            settings = RequestSettings.model_validate(
                {**self._settings.model_dump(), **options, "headers": headers}
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid request defaults: {e}", context={"options": sorted(options)}) from e

        self._settings = settings
        logger.info(f"Request defaults updated: {sorted(options) + ['headers']}")

    def build_url(self, endpoint: Endpoint) -> str:
        """
        Choose the URL shape for an endpoint.

        Without ``web_proxy`` the direct URL is used. With it the target is
        wrapped as ``{web_proxy}&contains={hint}&url={target}``, where the
        target is ``base64_prefix`` plus the encoded URL when ``base64`` is
        enabled.
        """
        if not self.config.web_proxy:
            return endpoint.url

        target = endpoint.url
        if self.config.base64 and endpoint.base64:
            target = f"{self.config.base64_prefix}{endpoint.base64}"
        return f"{self.config.web_proxy}&contains={endpoint.contains}&url={target}"

    # =========================================
    # Fetching
    # =========================================

    async def _fetch(self, endpoint: Endpoint, kind: ResponseKind) -> Any:
        settings = self._settings
        request = FetchRequest(url=self.build_url(endpoint), kind=kind)
        return await self.engine.fetch_resilient(request, self.config.max_retries, settings)

    def _listings_from_html(self, html: Any, params: Optional[SearchParams]) -> list[Listing]:
        return [
            self.parser.parse_listing(fragment, params, self.config.popularity)
            for fragment in extract_fragments(html)
        ]

    @staticmethod
    def _results_html(body: Any) -> Any:
        if not isinstance(body, dict) or "results_html" not in body:
            raise ExtractionError(field="results_html", record="response")
        return body["results_html"]

    # =========================================
    # Search
    # =========================================

    async def search(self, params: Optional[SearchParams] = None) -> list[Listing]:
        """
        Search the market HTML page.

        Returns:
            Listings in page order; empty when nothing matched.
        """
        params = params or SearchParams()
        with log_execution_time(logger, f"search '{params.query}'"):
            html = await self._fetch(endpoints.search(params), ResponseKind.TEXT)
            listings = self._listings_from_html(html, params)

        logger.info(f"Search '{params.query}': {len(listings)} listings")
        return listings

    async def search_render(self, params: Optional[SearchParams] = None) -> list[Listing]:
        """Search through the JSON render endpoint (supports pagination)."""
        params = params or SearchParams()
        body = await self._fetch(endpoints.search_render(params), ResponseKind.JSON)
        listings = self._listings_from_html(self._results_html(body), params)

        logger.info(f"Search render '{params.query}' start={params.start}: {len(listings)} listings")
        return listings

    async def search_render_raw(self, params: Optional[SearchParams] = None) -> dict:
        """Search through the JSON render endpoint and return the raw response."""
        params = params or SearchParams()
        return await self._fetch(endpoints.search_render(params), ResponseKind.JSON)

    # =========================================
    # Item listings
    # =========================================

    async def get_listing(
        self,
        app_id: int,
        market_hash_name: str,
        load_histogram: bool = False,
    ) -> ListingItem:
        """
        Fetch an item's market page.

        Args:
            app_id: Steam app id
            market_hash_name: Item market hash name
            load_histogram: Also fetch the order book histogram. If that
                second fetch fails the item is returned without it.

        Raises:
            MissingArgumentError: If app_id or market_hash_name is empty
        """
        if app_id is None:
            raise MissingArgumentError(argument="app_id")
        if not market_hash_name:
            raise MissingArgumentError(argument="market_hash_name")

        html = await self._fetch(endpoints.listings(app_id, market_hash_name), ResponseKind.TEXT)
        item = self.parser.parse_listing_item(parse_document(html), app_id, market_hash_name)

        if load_histogram:
            try:
                await self.fetch_histogram_for_item(item)
            except AppException as e:
                logger.warning(f"Histogram for {market_hash_name} unavailable, returning listing without it: {e}")

        return item

    async def get_listing_sales(
        self,
        item: Optional[ListingItem],
        params: Optional[SalesParams] = None,
    ) -> list[ListingSale]:
        """
        Fetch the active sell listings of an item.

        Raises:
            MissingArgumentError: If no item is given
        """
        if item is None:
            raise MissingArgumentError(argument="item")

        endpoint = endpoints.listing_sales(item.app_id, item.market_hash_name, params, self.locale)
        body = await self._fetch(endpoint, ResponseKind.JSON)
        results_html = self._results_html(body)
        listing_info = body.get("listinginfo") or {}

        return [
            self.parser.parse_sale(fragment, listing_info)
            for fragment in extract_fragments(results_html)
        ]

    # =========================================
    # Order book
    # =========================================

    @staticmethod
    def _require_name_id(name_id: Optional[int]) -> int:
        if not name_id:
            raise MissingArgumentError(argument="name_id")
        return name_id

    async def _histogram(self, name_id: Optional[int]) -> Histogram:
        name_id = self._require_name_id(name_id)
        body = await self._fetch(endpoints.item_orders_histogram(name_id, self.locale), ResponseKind.JSON)
        return self.parser.parse_histogram(body)

    async def _recent_activity(self, name_id: Optional[int]) -> RecentActivity:
        name_id = self._require_name_id(name_id)
        body = await self._fetch(endpoints.item_orders_activity(name_id, self.locale), ResponseKind.JSON)
        return self.parser.parse_recent_activity(body)

    async def fetch_histogram_by_id(self, name_id: int) -> Histogram:
        """Fetch the order book histogram for an order book id."""
        return await self._histogram(name_id)

    async def fetch_histogram_for_item(self, item: Optional[ListingItem]) -> ListingItem:
        """Fetch the order book histogram and attach it to ``item``."""
        if item is None:
            raise MissingArgumentError(argument="item")
        return item.attach_histogram(await self._histogram(item.name_id))

    async def fetch_recent_activity_by_id(self, name_id: int) -> RecentActivity:
        """Fetch recent order book activity for an order book id."""
        return await self._recent_activity(name_id)

    async def fetch_recent_activity_for_item(self, item: Optional[ListingItem]) -> ListingItem:
        """Fetch recent order book activity and attach it to ``item``."""
        if item is None:
            raise MissingArgumentError(argument="item")
        return item.attach_recent_activity(await self._recent_activity(item.name_id))

    # =========================================
    # Market-wide activity
    # =========================================

    async def get_popular(self, start: int = 0, count: int = 10) -> list[Listing]:
        """Fetch the globally popular listings."""
        body = await self._fetch(endpoints.popular(start, count, self.locale), ResponseKind.JSON)
        chunks = self._results_html(body)
        if isinstance(chunks, str):
            chunks = [chunks]

        listings: list[Listing] = []
        for chunk in chunks:
            listings.extend(self._listings_from_html(chunk, None))
        return listings

    async def get_recent(self) -> ActivityFeed:
        """Fetch recently created listings."""
        body = await self._fetch(endpoints.recent(self.locale), ResponseKind.JSON)
        return self.parser.parse_activity_feed(body, "listinginfo")

    async def get_recent_completed(self) -> ActivityFeed:
        """Fetch recently completed purchases."""
        body = await self._fetch(endpoints.recent_completed(), ResponseKind.JSON)
        return self.parser.parse_activity_feed(body, "purchaseinfo")
