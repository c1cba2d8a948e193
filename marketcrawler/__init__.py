"""marketcrawler - async Steam Community Market client."""

__version__ = "0.1.0"

from .scraper import MarketCrawler, SalesParams, SearchParams
from .utils import get_config, get_logger

__all__ = [
    "MarketCrawler",
    "SearchParams",
    "SalesParams",
    "get_config",
    "get_logger",
    "__version__",
]
