"""Steam Community Market endpoint descriptors.

Each builder returns an :class:`Endpoint` holding the direct URL, a
``contains`` hint (a string the response is expected to contain, used by
web proxies) and the base64 form of the URL.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, urlencode

from pydantic import BaseModel, Field

from .currency import Currency

MARKET_URL = "https://steamcommunity.com/market"

JSON_HINT = "success"


@dataclass(frozen=True)
class Endpoint:
    """A resolved market URL plus its proxy hints."""

    url: str
    contains: str
    base64: Optional[str] = None


@dataclass(frozen=True)
class Locale:
    """Country, language and wallet currency sent with market queries."""

    country: str = "US"
    language: str = "english"
    currency: Currency = Currency.USD

    def as_params(self) -> dict:
        return {
            "country": self.country,
            "language": self.language,
            "currency": int(self.currency),
        }


class SearchParams(BaseModel):
    """Parameters for the market search pages."""

    query: str = Field(default="", description="Free text search")
    app_id: Optional[int] = Field(default=None, description="Restrict results to one game")
    start: int = Field(default=0, ge=0)
    count: int = Field(default=10, ge=1, le=100)
    sort_column: str = Field(default="popular")
    sort_dir: str = Field(default="desc", pattern="^(asc|desc)$")
    search_descriptions: bool = False


class SalesParams(BaseModel):
    """Pagination for an item's active sell listings."""

    start: int = Field(default=0, ge=0)
    count: int = Field(default=10, ge=1, le=100)
    query: str = ""


def _endpoint(url: str, contains: str) -> Endpoint:
    encoded = base64.b64encode(url.encode("utf-8")).decode("ascii")
    return Endpoint(url=url, contains=contains, base64=encoded)


def search(params: SearchParams) -> Endpoint:
    query = {"q": params.query}
    if params.app_id is not None:
        query["appid"] = params.app_id
    if params.search_descriptions:
        query["descriptions"] = 1
    return _endpoint(f"{MARKET_URL}/search?{urlencode(query)}", quote(params.query) or "market_listing_row")


def search_render(params: SearchParams) -> Endpoint:
    query = {
        "query": params.query,
        "start": params.start,
        "count": params.count,
        "search_descriptions": int(params.search_descriptions),
        "sort_column": params.sort_column,
        "sort_dir": params.sort_dir,
    }
    if params.app_id is not None:
        query["appid"] = params.app_id
    return _endpoint(f"{MARKET_URL}/search/render/?{urlencode(query)}", JSON_HINT)


def listings(app_id: int, market_hash_name: str) -> Endpoint:
    name = quote(market_hash_name, safe="")
    return _endpoint(f"{MARKET_URL}/listings/{app_id}/{name}", name)


def listing_sales(
    app_id: int,
    market_hash_name: str,
    params: Optional[SalesParams] = None,
    locale: Optional[Locale] = None,
) -> Endpoint:
    params = params or SalesParams()
    locale = locale or Locale()
    name = quote(market_hash_name, safe="")
    query = {"query": params.query, "start": params.start, "count": params.count}
    query.update(locale.as_params())
    return _endpoint(f"{MARKET_URL}/listings/{app_id}/{name}/render/?{urlencode(query)}", JSON_HINT)


def _order_book(path: str, name_id: int, locale: Optional[Locale]) -> Endpoint:
    locale = locale or Locale()
    query = locale.as_params()
    query.update({"item_nameid": name_id, "two_factor": 0})
    return _endpoint(f"{MARKET_URL}/{path}?{urlencode(query)}", JSON_HINT)


def item_orders_histogram(name_id: int, locale: Optional[Locale] = None) -> Endpoint:
    return _order_book("itemordershistogram", name_id, locale)


def item_orders_activity(name_id: int, locale: Optional[Locale] = None) -> Endpoint:
    return _order_book("itemordersactivity", name_id, locale)


def popular(start: int = 0, count: int = 10, locale: Optional[Locale] = None) -> Endpoint:
    locale = locale or Locale()
    query = locale.as_params()
    query.update({"start": start, "count": count})
    return _endpoint(f"{MARKET_URL}/popular?{urlencode(query)}", JSON_HINT)


def recent(locale: Optional[Locale] = None) -> Endpoint:
    locale = locale or Locale()
    return _endpoint(f"{MARKET_URL}/recent?{urlencode(locale.as_params())}", JSON_HINT)


def recent_completed() -> Endpoint:
    return _endpoint(f"{MARKET_URL}/recentcompleted", JSON_HINT)
