"""Crawling components for the Steam Community Market.

This module provides an async market client:
- MarketCrawler: Facade composing endpoints, retries and record mapping
- RetryEngine: Bounded retries with a watchdog timeout
- MarketParser: HTML/JSON to typed record mapping
- Storage utilities: Save/load crawled records

Usage:
    from marketcrawler.scraper import MarketCrawler, SearchParams

    async with MarketCrawler() as crawler:
        listings = await crawler.search(SearchParams(query="AK-47", app_id=730))
"""

from .currency import Currency
from .endpoints import Endpoint, Locale, SalesParams, SearchParams
from .extractor import extract_fragments, parse_document
from .market_crawler import MarketCrawler
from .models import (
    ActivityEntry,
    ActivityFeed,
    Histogram,
    Listing,
    ListingItem,
    ListingSale,
    OrderGraphPoint,
    PricePoint,
    RecentActivity,
    UserActivity,
)
from .parsers import MarketParser
from .retry import RetryEngine
from .storage import load_records, save_records
from .transport import BaseTransport, FetchRequest, HttpTransport, ResponseKind

__all__ = [
    "MarketCrawler",
    "MarketParser",
    "RetryEngine",
    "BaseTransport",
    "HttpTransport",
    "FetchRequest",
    "ResponseKind",
    "Endpoint",
    "Locale",
    "Currency",
    "SearchParams",
    "SalesParams",
    "extract_fragments",
    "parse_document",
    "Listing",
    "ListingItem",
    "ListingSale",
    "Histogram",
    "OrderGraphPoint",
    "PricePoint",
    "RecentActivity",
    "ActivityEntry",
    "UserActivity",
    "ActivityFeed",
    "save_records",
    "load_records",
]
