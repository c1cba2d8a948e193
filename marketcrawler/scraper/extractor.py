"""
Listing row extraction from market HTML.

The market renders result rows in one of two shapes: rows wrapped in a
``.market_listing_row_link`` anchor (search pages) or bare
``.market_listing_row`` blocks (item listing pages). The extractor probes
for the link shape first and falls back to bare rows only when no link
row exists. Swapping this order changes which pages parse correctly.
"""

from __future__ import annotations

import copy
from typing import Iterator, Union

from bs4 import BeautifulSoup, Tag

from marketcrawler.utils.exceptions import DocumentParseError
from marketcrawler.utils.logger import get_logger

logger = get_logger(__name__)

ROW_LINK_SELECTOR = ".market_listing_row_link"
ROW_SELECTOR = ".market_listing_row"

Document = Union[str, bytes]


def parse_document(html: Document) -> BeautifulSoup:
    """
    Parse an HTML document into a navigable tree.

    Args:
        html: Markup as text, or bytes (decoded as UTF-8).

    Raises:
        DocumentParseError: If ``html`` isn't markup or can't be parsed.
    """
    if isinstance(html, bytes):
        html = html.decode("utf-8", errors="replace")
    if not isinstance(html, str):
        raise DocumentParseError(
            f"Expected HTML markup, got {type(html).__name__}",
            context={"type": type(html).__name__},
        )

    try:
        return BeautifulSoup(html, "lxml")
    except Exception as e:
        raise DocumentParseError(f"Failed to parse document: {e}") from e


def row_selector(soup: Tag) -> str:
    """Pick the row selector for a parsed page."""
    if soup.select_one(ROW_LINK_SELECTOR) is not None:
        return ROW_LINK_SELECTOR
    return ROW_SELECTOR


def extract_fragments(html: Document) -> Iterator[Tag]:
    """
    Split a page into independent listing row fragments.

    The document is parsed once, up front, so parse failures raise here
    rather than on first iteration. Each yielded fragment is a detached
    deep copy of its row; mutating the page tree afterwards can't affect
    it.

    Args:
        html: Full page or ``results_html`` markup.

    Returns:
        A single-pass iterator of row fragments in document order. Empty
        when the page has no rows.

    Raises:
        DocumentParseError: If the document can't be parsed.
    """
    soup = parse_document(html)
    selector = row_selector(soup)
    rows = soup.select(selector)
    logger.debug(f"Found {len(rows)} rows matching {selector}")

    return (copy.copy(row) for row in rows)
