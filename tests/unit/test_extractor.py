"""Unit tests for listing row extraction."""

import pytest

from marketcrawler.scraper.extractor import (
    ROW_LINK_SELECTOR,
    ROW_SELECTOR,
    extract_fragments,
    parse_document,
    row_selector,
)
from marketcrawler.utils.exceptions import DocumentParseError


BARE_ROWS = """
<div id="searchResultsRows">
  <div class="market_listing_row" id="listing_1"><span class="name">first</span></div>
  <div class="market_listing_row" id="listing_2"><span class="name">second</span></div>
</div>
"""

MIXED_ROWS = """
<div id="searchResultsRows">
  <a class="market_listing_row_link" href="https://steamcommunity.com/market/listings/730/A">
    <div class="market_listing_row">A</div>
  </a>
  <a class="market_listing_row_link" href="https://steamcommunity.com/market/listings/730/B">
    <div class="market_listing_row">B</div>
  </a>
  <div class="market_listing_row">stray</div>
</div>
"""


class TestExtractFragments:
    """Test row fragment extraction."""

    @pytest.mark.parametrize("html", ["", "<html><body><p>No results</p></body></html>"])
    def test_no_rows_yields_nothing(self, html):
        """Pages without rows produce an empty sequence."""
        assert list(extract_fragments(html)) == []

    def test_returns_single_pass_iterator(self):
        """Fragments come from an iterator, not a list."""
        fragments = extract_fragments(BARE_ROWS)
        assert iter(fragments) is fragments
        assert len(list(fragments)) == 2
        assert list(fragments) == []

    def test_prefers_row_links(self):
        """Link-wrapped rows win over bare rows when both exist."""
        fragments = list(extract_fragments(MIXED_ROWS))

        assert [fragment.name for fragment in fragments] == ["a", "a"]
        assert [fragment.get_text(strip=True) for fragment in fragments] == ["A", "B"]

    def test_falls_back_to_bare_rows(self):
        """Bare rows are used when no link rows exist."""
        fragments = list(extract_fragments(BARE_ROWS))

        assert [fragment["id"] for fragment in fragments] == ["listing_1", "listing_2"]

    def test_document_order(self, search_html):
        """Rows keep document order."""
        names = [fragment.select_one(".market_listing_item_name").get_text() for fragment in extract_fragments(search_html)]
        assert names == [
            "AK-47 | Redline (Field-Tested)",
            "AWP | Asiimov (Battle-Scarred)",
            "Sticker | Crown (Foil)",
        ]

    def test_fragments_are_detached(self):
        """Each fragment is independent of the page and of its siblings."""
        first, second = extract_fragments(BARE_ROWS)

        assert first.parent is None
        first.select_one(".name").decompose()

        assert first.select_one(".name") is None
        assert second.select_one(".name").get_text() == "second"

    def test_accepts_bytes(self):
        """UTF-8 bytes are decoded before parsing."""
        fragments = list(extract_fragments(BARE_ROWS.encode("utf-8")))
        assert len(fragments) == 2

    @pytest.mark.parametrize("html", [None, 42, {"results_html": ""}])
    def test_rejects_non_markup(self, html):
        """Non-markup input fails eagerly, before iteration."""
        with pytest.raises(DocumentParseError):
            extract_fragments(html)


class TestRowSelector:
    """Test row shape detection."""

    def test_link_shape(self):
        assert row_selector(parse_document(MIXED_ROWS)) == ROW_LINK_SELECTOR

    def test_bare_shape(self):
        assert row_selector(parse_document(BARE_ROWS)) == ROW_SELECTOR
