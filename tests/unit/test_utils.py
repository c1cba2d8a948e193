"""Unit tests for scraping helpers, storage and error types."""

import pytest

from marketcrawler.scraper.models import Listing, UserActivity
from marketcrawler.scraper.storage import load_records, save_records
from marketcrawler.scraper.utils import (
    clean_text,
    generate_export_name,
    parse_int,
    parse_listing_url,
    parse_price,
    sanitize_filename,
)
from marketcrawler.utils.exceptions import ExtractionError, MissingArgumentError, TransportError


class TestParsePrice:
    """Test display price parsing."""

    @pytest.mark.parametrize("text,expected", [
        ("$1,234.56 USD", 123456),
        ("1.234,56€", 123456),
        ("12,50 €", 1250),
        ("12,--€", 1200),
        ("¥ 1,234", 123400),
        ("$0.03", 3),
        ("1 234,5 pуб.", 123450),
        ("CDN$ 7", 700),
    ])
    def test_formats(self, text, expected):
        assert parse_price(text) == expected

    @pytest.mark.parametrize("text", ["", "Sold!", None])
    def test_no_number(self, text):
        with pytest.raises(ValueError):
            parse_price(text)


class TestParseHelpers:
    """Test small parsing helpers."""

    def test_parse_listing_url(self):
        url = "https://steamcommunity.com/market/listings/570/Dragonclaw%20Hook?filter=x"
        assert parse_listing_url(url) == (570, "Dragonclaw Hook")

    @pytest.mark.parametrize("url", [
        "https://steamcommunity.com/market/search?q=key",
        "https://steamcommunity.com/market/listings/abc/Key",
        "https://steamcommunity.com/market/listings/730",
    ])
    def test_parse_listing_url_rejects(self, url):
        with pytest.raises(ValueError):
            parse_listing_url(url)

    @pytest.mark.parametrize("value,expected", [
        (12, 12),
        ("1,523", 1523),
        ("  42 ", 42),
        ("", None),
        (None, None),
        (True, None),
    ])
    def test_parse_int(self, value, expected):
        assert parse_int(value) == expected

    def test_clean_text(self):
        assert clean_text("  AK-47 \n | Redline ") == "AK-47 | Redline"
        assert clean_text("   ") is None

    def test_sanitize_filename(self):
        assert sanitize_filename('AK-47 | Redline: "FT"') == "AK-47_Redline_FT"
        assert sanitize_filename("///") == "unnamed"

    def test_export_name(self):
        name = generate_export_name("recent completed")
        assert name.startswith("recent_completed_")
        assert name.endswith(".json")


class TestStorage:
    """Test record persistence."""

    def test_round_trip_listings(self, temp_data_dir):
        listings = [
            Listing(name="Key", market_hash_name="Key", app_id=440, quantity=3, price=250),
            Listing(name="Case", market_hash_name="Case", app_id=730, quantity=1, price=3, popularity=0.1),
        ]
        path = save_records(listings, temp_data_dir / "out" / "listings.json")

        assert path.exists()
        assert load_records(path, Listing) == listings

    def test_single_record_with_datetime(self, temp_data_dir, recent_completed_payload, parser):
        feed = parser.parse_activity_feed(recent_completed_payload, "purchaseinfo")
        path = save_records(feed.listings[0], temp_data_dir / "purchase.json")

        loaded = load_records(path, UserActivity)
        assert loaded == [feed.listings[0]]

    def test_missing_file(self, temp_data_dir):
        with pytest.raises(FileNotFoundError):
            load_records(temp_data_dir / "nope.json", Listing)


class TestExceptions:
    """Test error types carry their context."""

    def test_missing_argument_message(self):
        error = MissingArgumentError(argument="name_id")
        assert error.message == "You have to provide the `name_id` value"
        assert error.context == {"argument": "name_id"}
        assert str(error) == "[MISSING_ARGUMENT] You have to provide the `name_id` value"

    def test_extraction_error_to_dict(self):
        error = ExtractionError(field="price", record="Listing")
        assert error.to_dict() == {
            "error_type": "ExtractionError",
            "message": "Missing or malformed field `price` in Listing",
            "code": "EXTRACTION_ERROR",
            "context": {"field": "price", "record": "Listing"},
        }

    def test_transport_error_context(self):
        error = TransportError("HTTP 429", url="https://x/y", status_code=429)
        assert error.status_code == 429
        assert error.context == {"url": "https://x/y", "status_code": 429}
