"""Pytest fixtures and configuration for marketcrawler tests."""

import tempfile
from pathlib import Path
from typing import Any, Generator

import pytest

from marketcrawler.scraper.parsers import MarketParser
from marketcrawler.scraper.transport import BaseTransport, FetchRequest
from marketcrawler.utils.config import CrawlerConfig, RequestSettings, reset_config
from marketcrawler.utils.exceptions import TransportError


# ============================================
# Sample market pages
# ============================================

REDLINE_URL = (
    "https://steamcommunity.com/market/listings/730/"
    "AK-47%20%7C%20Redline%20%28Field-Tested%29"
)


def search_row(name: str, url: str, price: int, qty: int, app_id: int = 730) -> str:
    """Render one link-wrapped search result row."""
    return f"""
    <a class="market_listing_row_link" href="{url}" id="resultlink_{qty}">
      <div class="market_listing_row market_recent_listing_row market_listing_searchresult"
           data-appid="{app_id}" data-hash-name="{name}">
        <img class="market_listing_item_img"
             src="https://community.cloudflare.steamstatic.com/economy/image/abc/62fx62f" alt="">
        <div class="market_listing_right_cell market_listing_their_price">
          <span class="market_table_value normal_price">Starting at:<br>
            <span class="normal_price" data-price="{price}" data-currency="1">${price / 100:.2f} USD</span>
            <span class="sale_price">${price * 0.87 / 100:.2f} USD</span>
          </span>
        </div>
        <div class="market_listing_right_cell market_listing_num_listings">
          <span class="market_table_value">
            <span class="market_listing_num_listings_qty" data-qty="{qty}">{qty:,}</span>
          </span>
        </div>
        <div class="market_listing_item_name_block">
          <span class="market_listing_item_name">{name}</span>
          <br>
          <span class="market_listing_game_name">Counter-Strike 2</span>
        </div>
      </div>
    </a>
    """


SEARCH_ROWS = [
    ("AK-47 | Redline (Field-Tested)", REDLINE_URL, 1234, 1523),
    (
        "AWP | Asiimov (Battle-Scarred)",
        "https://steamcommunity.com/market/listings/730/AWP%20%7C%20Asiimov%20%28Battle-Scarred%29",
        8950,
        312,
    ),
    (
        "Sticker | Crown (Foil)",
        "https://steamcommunity.com/market/listings/730/Sticker%20%7C%20Crown%20%28Foil%29",
        120500,
        41,
    ),
]


@pytest.fixture
def search_html() -> str:
    """Search page with three result rows."""
    rows = "".join(search_row(*row) for row in SEARCH_ROWS)
    return f"""
    <html>
    <head><title>Steam Community :: Market</title></head>
    <body>
      <div id="searchResultsRows">{rows}</div>
    </body>
    </html>
    """


@pytest.fixture
def listing_page_html() -> str:
    """Item listing page with an order book id and price history."""
    return """
    <html>
    <head><title>Steam Community Market :: Listings for AK-47 | Redline (Field-Tested)</title></head>
    <body>
      <div class="market_listing_largeimage">
        <img src="https://community.cloudflare.steamstatic.com/economy/image/abc/360fx360f" alt="">
      </div>
      <h1 id="largeiteminfo_item_name" class="hover_item_name">AK-47 | Redline (Field-Tested)</h1>
      <script type="text/javascript">
        var line1=[["Jul 02 2014 01: +0",417.302,"1"],["Jul 03 2014 01: +0",260.46,"2"]];
        $J(function() {
          ItemActivityTicker.Start( 176000000 );
          Market_LoadOrderSpread( 176000000 );
        });
      </script>
    </body>
    </html>
    """


@pytest.fixture
def sales_payload() -> dict:
    """``listings/<app>/<name>/render`` response with two sell listings."""
    rows = """
    <div id="searchResultsRows">
      <div class="market_listing_row market_recent_listing_row listing_3190001" id="listing_3190001">
        <span class="market_listing_price market_listing_price_with_fee">$12.34</span>
        <span class="market_listing_price market_listing_price_without_fee">$10.73</span>
      </div>
      <div class="market_listing_row market_recent_listing_row listing_3190002" id="listing_3190002">
        <span class="market_listing_price market_listing_price_with_fee">Sold!</span>
      </div>
    </div>
    """
    inspect = "steam://rungame/730/76561202255233023/+csgo_econ_action_preview%20M%listingid%A%assetid%D1"
    return {
        "success": True,
        "start": 0,
        "pagesize": 10,
        "total_count": 2,
        "results_html": rows,
        "listinginfo": {
            "3190001": {
                "listingid": "3190001",
                "price": 1073,
                "fee": 161,
                "asset": {
                    "currency": 0,
                    "appid": 730,
                    "contextid": "2",
                    "id": "28000000001",
                    "amount": "1",
                    "market_actions": [{"link": inspect, "name": "Inspect in Game..."}],
                },
            },
            "3190002": {
                "listingid": "3190002",
                "price": 1100,
                "fee": 165,
                "asset": {"currency": 0, "appid": 730, "contextid": "2", "id": "28000000002", "amount": "1"},
            },
        },
    }


@pytest.fixture
def histogram_payload() -> dict:
    """``itemordershistogram`` response."""
    return {
        "success": 1,
        "sell_order_summary": (
            '<span class="market_commodity_orders_header_promote">1,523</span> for sale starting at '
            '<span class="market_commodity_orders_header_promote">$12.34</span>'
        ),
        "buy_order_summary": (
            '<span class="market_commodity_orders_header_promote">12,001</span> requests to buy at '
            '<span class="market_commodity_orders_header_promote">$11.80</span> or lower'
        ),
        "highest_buy_order": "1180",
        "lowest_sell_order": "1234",
        "buy_order_graph": [
            [11.8, 10, "10 buy orders at $11.80 or higher"],
            [11.75, 25, "25 buy orders at $11.75 or higher"],
        ],
        "sell_order_graph": [[12.34, 3, "3 sell orders at $12.34 or lower"]],
        "graph_max_y": 100,
        "price_prefix": "$",
        "price_suffix": "",
    }


@pytest.fixture
def activity_payload() -> dict:
    """``itemordersactivity`` response with HTML activity lines."""
    return {
        "success": 1,
        "activity": [
            '<div class="market_activity_line_item">'
            '<span class="market_ticker_name">Buyer</span> purchased this item from '
            '<span class="market_ticker_name">Seller</span> for $12.34</div>',
        ],
        "timestamp": 1700000000,
    }


def _assets() -> dict:
    return {
        "730": {
            "2": {
                "99": {"market_hash_name": "Sticker | Crown (Foil)", "name": "Sticker | Crown (Foil)", "icon_url": "abc"},
                "100": {"market_hash_name": "Operation Bravo Case", "name": "Operation Bravo Case", "icon_url": "def"},
            }
        }
    }


@pytest.fixture
def recent_payload() -> dict:
    """``recent`` response with one new listing."""
    return {
        "success": True,
        "more": False,
        "results_html": False,
        "listinginfo": {
            "4321": {
                "listingid": "4321",
                "price": 100,
                "fee": 15,
                "currencyid": 2001,
                "asset": {"currency": 0, "appid": 730, "contextid": "2", "id": "99", "amount": "1"},
            }
        },
        "purchaseinfo": [],
        "assets": _assets(),
        "last_time": 1700000000,
        "last_listing": 4321,
    }


@pytest.fixture
def recent_completed_payload() -> dict:
    """``recentcompleted`` response with one purchase."""
    return {
        "success": True,
        "purchaseinfo": {
            "11": {
                "listingid": "11",
                "purchaseid": "22",
                "time_sold": 1700000000,
                "paid_amount": 300,
                "paid_fee": 45,
                "currencyid": "2001",
                "asset": {"currency": 0, "appid": 730, "contextid": "2", "id": "100", "amount": "1"},
            }
        },
        "assets": _assets(),
        "last_time": 1700000100,
        "last_listing": "11",
    }


# ============================================
# Crawler plumbing
# ============================================


class FakeTransport(BaseTransport):
    """Scripted transport.

    ``routes`` maps a URL substring to a response. A response may be a
    body, an exception instance to raise, or a list consumed one entry per
    call (the last entry repeats).
    """

    def __init__(self, routes: dict[str, Any] | None = None):
        self.routes = routes or {}
        self.requests: list[FetchRequest] = []
        self.settings: list[RequestSettings] = []

    async def fetch(self, request: FetchRequest, settings: RequestSettings) -> Any:
        self.requests.append(request)
        self.settings.append(settings)

        for marker, response in self.routes.items():
            if marker in request.url:
                break
        else:
            raise TransportError("HTTP 404", url=request.url, status_code=404)

        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if isinstance(response, BaseException):
            raise response
        return response

    def calls_to(self, marker: str) -> int:
        return sum(1 for request in self.requests if marker in request.url)


@pytest.fixture
def fake_transport_cls() -> type[FakeTransport]:
    """Scripted transport class."""
    return FakeTransport


@pytest.fixture
def crawler_config() -> CrawlerConfig:
    """Crawler configuration with short timeouts."""
    return CrawlerConfig(timeout=0.5, watchdog_slack=0.5, max_retries=2)


@pytest.fixture
def parser() -> MarketParser:
    """Record mapper instance."""
    return MarketParser()


@pytest.fixture(autouse=True)
def clean_config(monkeypatch) -> Generator[None, None, None]:
    """Isolate tests from any local config file or env overrides."""
    monkeypatch.delenv("MARKETCRAWLER_CONFIG", raising=False)
    monkeypatch.delenv("MARKETCRAWLER_LOG_DIR", raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def temp_data_dir() -> Generator[Path, None, None]:
    """Create temporary directory for test artifacts."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)
