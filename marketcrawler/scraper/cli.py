"""Command-line interface for the market crawler.

Usage:
    python -m marketcrawler.scraper.cli search "AK-47" --app-id 730
    python -m marketcrawler.scraper.cli listing 730 "AK-47 | Redline (Field-Tested)" --histogram
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from pydantic import BaseModel

from marketcrawler.utils import configure_logging, get_config, get_logger, log_exception, log_execution_time
from marketcrawler.utils.exceptions import AppException

from .endpoints import SalesParams, SearchParams
from .market_crawler import MarketCrawler
from .models import ListingItem
from .storage import save_records
from .utils import generate_export_name, parse_listing_url

logger = get_logger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Crawl the Steam Community Market",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Search CS2 items and save them
  python -m marketcrawler.scraper.cli search "AK-47" --app-id 730 --output data/ak.json

  # Item page with its order book, through a proxy
  python -m marketcrawler.scraper.cli --proxy http://127.0.0.1:8080 listing 730 "AK-47 | Redline (Field-Tested)" --histogram

  # Latest completed purchases with debug logging
  python -m marketcrawler.scraper.cli --log-level DEBUG recent-completed
        """
    )

    parser.add_argument(
        '--config',
        type=Path,
        default=None,
        help='Path to configuration file (default: auto-detect)'
    )
    parser.add_argument(
        '--proxy',
        type=str,
        default=None,
        help='HTTP proxy URL (overrides config)'
    )
    parser.add_argument(
        '--log-level',
        type=str,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=None,
        help='Override log level'
    )
    parser.add_argument(
        '--output',
        type=Path,
        default=None,
        help='Write results to this JSON file instead of stdout'
    )

    commands = parser.add_subparsers(dest='command', required=True)

    search = commands.add_parser('search', help='Search the market')
    search.add_argument('query', help='Search text')
    search.add_argument('--app-id', type=int, default=None, help='Restrict to one game')
    search.add_argument('--start', type=int, default=0, help='Result offset')
    search.add_argument('--count', type=int, default=10, help='Results per page (1-100)')
    search.add_argument('--render', action='store_true', help='Use the paginated JSON endpoint')

    listing = commands.add_parser('listing', help='Fetch an item page')
    _add_item_arguments(listing)
    listing.add_argument('--histogram', action='store_true', help='Also load the order book')

    sales = commands.add_parser('sales', help='Fetch the active sell listings of an item')
    _add_item_arguments(sales)
    sales.add_argument('--start', type=int, default=0, help='Listing offset')
    sales.add_argument('--count', type=int, default=10, help='Listings per page (1-100)')

    histogram = commands.add_parser('histogram', help='Fetch an order book histogram')
    histogram.add_argument('name_id', type=int, help='Order book id')

    activity = commands.add_parser('activity', help='Fetch recent order book activity')
    activity.add_argument('name_id', type=int, help='Order book id')

    popular = commands.add_parser('popular', help='Fetch popular listings')
    popular.add_argument('--start', type=int, default=0, help='Result offset')
    popular.add_argument('--count', type=int, default=10, help='Results per page')

    commands.add_parser('recent', help='Fetch recently created listings')
    commands.add_parser('recent-completed', help='Fetch recently completed purchases')

    return parser.parse_args(argv)


def _add_item_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        'item',
        help='Listing URL, or app id followed by the market hash name'
    )
    parser.add_argument('name', nargs='?', default=None, help='Market hash name')


def resolve_item(item: str, name: Optional[str]) -> tuple[int, str]:
    """Resolve ``<url>`` or ``<app_id> <name>`` to an app id and hash name.

    Raises:
        ValueError: If the arguments name no item
    """
    if name is None:
        return parse_listing_url(item)
    if not item.isdigit():
        raise ValueError(f"App id must be numeric, got {item!r}")
    return int(item), name


async def run_command(crawler: MarketCrawler, args: argparse.Namespace) -> Any:
    """Dispatch one subcommand to the crawler.

    Returns:
        A record or a list of records
    """
    if args.command == 'search':
        params = SearchParams(query=args.query, app_id=args.app_id, start=args.start, count=args.count)
        if args.render:
            return await crawler.search_render(params)
        return await crawler.search(params)

    if args.command == 'listing':
        app_id, name = resolve_item(args.item, args.name)
        return await crawler.get_listing(app_id, name, load_histogram=args.histogram)

    if args.command == 'sales':
        app_id, name = resolve_item(args.item, args.name)
        item = await crawler.get_listing(app_id, name)
        return await crawler.get_listing_sales(item, SalesParams(start=args.start, count=args.count))

    if args.command == 'histogram':
        return await crawler.fetch_histogram_by_id(args.name_id)

    if args.command == 'activity':
        return await crawler.fetch_recent_activity_by_id(args.name_id)

    if args.command == 'popular':
        return await crawler.get_popular(args.start, args.count)

    if args.command == 'recent':
        return await crawler.get_recent()

    if args.command == 'recent-completed':
        return await crawler.get_recent_completed()

    raise ValueError(f"Unknown command: {args.command}")


def _summary(result: Any) -> str:
    if isinstance(result, list):
        return f"{len(result)} record(s)"
    if isinstance(result, ListingItem):
        return f"{result.name or result.market_hash_name} (name_id={result.name_id})"
    return type(result).__name__


async def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)

    try:
        config = get_config(args.config)

        configure_logging(args.log_level or config.log_level, config.log_dir)

        logger.info(f"Command: {args.command}")

        async with MarketCrawler(config.crawler) as crawler:
            if args.proxy:
                crawler.set_proxy(args.proxy)

            with log_execution_time(logger, args.command):
                result = await run_command(crawler, args)

        if args.output is not None:
            records = result if isinstance(result, list) else [result]
            output = args.output
            if output.suffix != '.json':
                output = output / generate_export_name(args.command)
            save_records(records, output)
            print(f"Saved {_summary(result)} to {output}")
        else:
            _print_result(result)

        return 0

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 1

    except (AppException, ValueError) as e:
        log_exception(logger, args.command, e)
        print(f"\n✗ {args.command} failed: {e}", file=sys.stderr)
        return 1


def _print_result(result: Any) -> None:
    if isinstance(result, BaseModel):
        print(result.model_dump_json(indent=2))
        return

    print("[")
    for i, record in enumerate(result):
        suffix = "," if i < len(result) - 1 else ""
        print(record.model_dump_json(indent=2) + suffix)
    print("]")


def run() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == '__main__':
    run()
