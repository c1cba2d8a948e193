"""HTML/JSON parsing for Steam Community Market records.

Each parse method builds one complete record or raises ExtractionError
naming the first missing or malformed field. Records are never returned
half filled.
"""

import json
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Type, TypeVar

from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel, ValidationError

from marketcrawler.utils.config import PopularityConfig
from marketcrawler.utils.exceptions import ExtractionError
from marketcrawler.utils.logger import get_logger

from .endpoints import SearchParams
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
from .utils import (
    LISTING_ID_PATTERN,
    NAME_ID_PATTERN,
    PRICE_HISTORY_PATTERN,
    clean_text,
    parse_int,
    parse_listing_url,
    parse_price,
)

logger = get_logger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

_MISSING = (None, "")


class MarketParser:
    """Parser for extracting typed records from market fragments and JSON."""

    SELECTORS = {
        'listing': {
            'row': '.market_listing_row',
            'name': '.market_listing_item_name',
            'game_name': '.market_listing_game_name',
            'image': 'img.market_listing_item_img',
            'quantity': '.market_listing_num_listings_qty',
            'price': 'span.normal_price[data-price]',
            'price_text': '.market_listing_their_price .normal_price',
            'sale_price': '.sale_price',
        },
        'item': {
            'name': '#largeiteminfo_item_name',
            'image': '.market_listing_largeimage img',
        },
        'sale': {
            'price_with_fee': '.market_listing_price_with_fee',
            'price_without_fee': '.market_listing_price_without_fee',
        },
        'histogram': {
            'order_count': '.market_commodity_orders_header_promote',
        },
    }

    # ------------------------------------------------------------------
    # Search rows
    # ------------------------------------------------------------------

    def parse_listing(
        self,
        fragment: Tag,
        params: Optional[SearchParams] = None,
        popularity: Optional[PopularityConfig] = None,
    ) -> Listing:
        """Build a Listing from one search result row.

        Args:
            fragment: Row fragment (link-wrapped or bare row)
            params: Search parameters the row was fetched with
            popularity: Popularity index settings

        Returns:
            Listing record

        Raises:
            ExtractionError: If a required field is missing or malformed
        """
        selectors = self.SELECTORS['listing']
        record = "Listing"
        row = self._select_self_or_descendant(fragment, selectors['row']) or fragment

        url = self._link(fragment)
        url_app_id, url_hash_name = self._ids_from_url(url)

        name = self._required(self._text(fragment, selectors['name']), 'name', record)
        market_hash_name = self._required(
            row.get('data-hash-name') or url_hash_name, 'market_hash_name', record
        )

        app_id = parse_int(row.get('data-appid'))
        if app_id is None:
            app_id = url_app_id
        if app_id is None and params is not None:
            app_id = params.app_id
        app_id = self._required(app_id, 'app_id', record)

        quantity_node = fragment.select_one(selectors['quantity'])
        quantity = None
        if quantity_node is not None:
            quantity = parse_int(quantity_node.get('data-qty'))
            if quantity is None:
                quantity = parse_int(quantity_node.get_text())
        quantity = self._required(quantity, 'quantity', record)

        price, currency = self._listing_price(fragment)
        sale_price = None
        sale_text = self._text(fragment, selectors['sale_price'])
        if sale_text:
            sale_price = self._price(sale_text, 'sale_price', record)

        image = None
        image_node = fragment.select_one(selectors['image'])
        if image_node is not None:
            image = image_node.get('src')

        index = None
        if popularity is not None and popularity.use:
            index = round(quantity / popularity.divider, 4)

        return self._build(
            Listing,
            record,
            name=name,
            market_hash_name=market_hash_name,
            app_id=app_id,
            game_name=self._text(fragment, selectors['game_name']),
            url=url,
            image=image,
            quantity=quantity,
            price=price,
            sale_price=sale_price,
            currency=currency,
            popularity=index,
        )

    def _listing_price(self, fragment: Tag) -> tuple[int, Optional[int]]:
        selectors = self.SELECTORS['listing']
        node = fragment.select_one(selectors['price'])
        if node is not None:
            price = parse_int(node.get('data-price'))
            if price is None:
                raise ExtractionError(field='price', record='Listing')
            return price, parse_int(node.get('data-currency'))

        # Older markup has no data attributes, use the innermost price text
        nodes = fragment.select(selectors['price_text'])
        if not nodes:
            raise ExtractionError(field='price', record='Listing')
        return self._price(nodes[-1].get_text(), 'price', 'Listing'), None

    # ------------------------------------------------------------------
    # Item page
    # ------------------------------------------------------------------

    def parse_listing_item(
        self,
        document: Tag,
        app_id: int,
        market_hash_name: str,
    ) -> ListingItem:
        """Build a ListingItem from a full item listing page.

        The order book id is read from the page's
        ``Market_LoadOrderSpread( <id> )`` call and the price history from
        its ``var line1=[...]`` script variable.
        """
        record = "ListingItem"
        selectors = self.SELECTORS['item']
        markup = str(document)

        match = NAME_ID_PATTERN.search(markup)
        if not match:
            raise ExtractionError(field='name_id', record=record)

        name = self._text(document, selectors['name'])
        if name is None and document.title is not None:
            title = clean_text(document.title.get_text()) or ""
            name = title.rpartition("Listings for ")[2] or None

        image = None
        image_node = document.select_one(selectors['image'])
        if image_node is not None:
            image = image_node.get('src')

        return self._build(
            ListingItem,
            record,
            app_id=app_id,
            market_hash_name=market_hash_name,
            name_id=int(match.group(1)),
            name=name,
            image=image,
            price_history=self._price_history(markup),
        )

    def _price_history(self, markup: str) -> list[PricePoint]:
        match = PRICE_HISTORY_PATTERN.search(markup)
        if not match:
            return []

        try:
            points = json.loads(match.group(1))
            return [
                PricePoint(time=str(time), price=float(price), volume=parse_int(volume) or 0)
                for time, price, volume in points
            ]
        except (ValueError, TypeError, ValidationError) as e:
            raise ExtractionError(field='price_history', record='ListingItem') from e

    # ------------------------------------------------------------------
    # Sell listings of an item
    # ------------------------------------------------------------------

    def parse_sale(self, fragment: Tag, listing_info: Mapping[str, Any]) -> ListingSale:
        """Build a ListingSale from a listing row and the render ``listinginfo``."""
        record = "ListingSale"
        selectors = self.SELECTORS['sale']

        match = LISTING_ID_PATTERN.search(fragment.get('id') or "")
        if not match:
            raise ExtractionError(field='listing_id', record=record)
        listing_id = match.group(1)

        info = (listing_info or {}).get(listing_id)
        if not isinstance(info, Mapping):
            raise ExtractionError(field='listinginfo', record=record)
        asset = info.get('asset')
        if not isinstance(asset, Mapping):
            raise ExtractionError(field='asset', record=record)

        price_text = self._text(fragment, selectors['price_with_fee'])
        if price_text and any(char.isdigit() for char in price_text):
            price = self._price(price_text, 'price', record)
        else:
            base = parse_int(info.get('converted_price', info.get('price')))
            fee = parse_int(info.get('converted_fee', info.get('fee'))) or 0
            price = self._required(base, 'price', record) + fee

        without_fee_text = self._text(fragment, selectors['price_without_fee'])
        if without_fee_text and any(char.isdigit() for char in without_fee_text):
            price_without_fee = self._price(without_fee_text, 'price_without_fee', record)
        else:
            price_without_fee = parse_int(info.get('converted_price', info.get('price')))

        asset_id = self._required(asset.get('id'), 'asset.id', record)

        inspect_link = None
        for action in asset.get('market_actions') or []:
            link = action.get('link') if isinstance(action, Mapping) else None
            if link:
                inspect_link = (
                    link.replace('%listingid%', listing_id).replace('%assetid%', str(asset_id))
                )
                break

        return self._build(
            ListingSale,
            record,
            listing_id=listing_id,
            price=price,
            price_without_fee=price_without_fee,
            asset_id=str(asset_id),
            app_id=self._required(parse_int(asset.get('appid')), 'asset.appid', record),
            context_id=str(self._required(asset.get('contextid'), 'asset.contextid', record)),
            amount=parse_int(asset.get('amount')) or 1,
            inspect_link=inspect_link,
        )

    # ------------------------------------------------------------------
    # Order book
    # ------------------------------------------------------------------

    def parse_histogram(self, payload: Mapping[str, Any]) -> Histogram:
        """Build a Histogram from an ``itemordershistogram`` response."""
        record = "Histogram"
        if not isinstance(payload, Mapping):
            raise ExtractionError(field='payload', record=record)

        buy_count = parse_int(payload.get('buy_order_count'))
        if buy_count is None:
            buy_count = self._order_count(payload.get('buy_order_summary'))
        sell_count = parse_int(payload.get('sell_order_count'))
        if sell_count is None:
            sell_count = self._order_count(payload.get('sell_order_summary'))

        return self._build(
            Histogram,
            record,
            highest_buy_order=parse_int(payload.get('highest_buy_order')),
            lowest_sell_order=parse_int(payload.get('lowest_sell_order')),
            buy_order_count=buy_count,
            sell_order_count=sell_count,
            buy_order_graph=self._order_graph(payload, 'buy_order_graph'),
            sell_order_graph=self._order_graph(payload, 'sell_order_graph'),
            price_prefix=payload.get('price_prefix') or "",
            price_suffix=payload.get('price_suffix') or "",
        )

    def _order_graph(self, payload: Mapping[str, Any], field: str) -> list[OrderGraphPoint]:
        graph = payload.get(field)
        if not isinstance(graph, list):
            raise ExtractionError(field=field, record='Histogram')

        points = []
        try:
            for point in graph:
                price, quantity = point[0], point[1]
                label = point[2] if len(point) > 2 else ""
                points.append(OrderGraphPoint(price=float(price), quantity=int(quantity), label=str(label)))
        except (IndexError, TypeError, ValueError, ValidationError) as e:
            raise ExtractionError(field=field, record='Histogram') from e
        return points

    def _order_count(self, summary: Optional[str]) -> Optional[int]:
        if not summary:
            return None
        node = BeautifulSoup(summary, 'lxml').select_one(self.SELECTORS['histogram']['order_count'])
        if node is None:
            return None
        return parse_int(node.get_text())

    def parse_recent_activity(self, payload: Mapping[str, Any]) -> RecentActivity:
        """Build RecentActivity from an ``itemordersactivity`` response.

        Activity lines come either as HTML snippets or as objects,
        depending on the market version.
        """
        record = "RecentActivity"
        if not isinstance(payload, Mapping) or not isinstance(payload.get('activity'), list):
            raise ExtractionError(field='activity', record=record)

        entries = []
        for line in payload['activity']:
            if isinstance(line, str):
                text = clean_text(BeautifulSoup(line, 'lxml').get_text(' '))
                entries.append(ActivityEntry(text=self._required(text, 'activity', record)))
            elif isinstance(line, Mapping):
                entries.append(self._activity_entry(line))
            else:
                raise ExtractionError(field='activity', record=record)

        return self._build(
            RecentActivity,
            record,
            timestamp=parse_int(payload.get('timestamp')),
            entries=entries,
        )

    def _activity_entry(self, line: Mapping[str, Any]) -> ActivityEntry:
        kind = line.get('type')
        who = line.get('persona_buyer') or line.get('persona_seller')
        text = clean_text(" ".join(str(part) for part in (who, kind, line.get('price')) if part))
        return self._build(
            ActivityEntry,
            "RecentActivity",
            text=self._required(text, 'activity', "RecentActivity"),
            type=str(kind) if kind is not None else None,
            price=parse_int(line.get('price')),
            quantity=parse_int(line.get('quantity')),
            time=parse_int(line.get('time')),
        )

    # ------------------------------------------------------------------
    # Recent market activity
    # ------------------------------------------------------------------

    def parse_user_activity(self, entry: Mapping[str, Any], assets: Mapping[str, Any]) -> UserActivity:
        """Build a UserActivity from a ``listinginfo``/``purchaseinfo`` entry.

        Args:
            entry: One listing or purchase entry
            assets: The response's ``assets`` mapping, keyed app id ->
                context id -> asset id
        """
        record = "UserActivity"
        if not isinstance(entry, Mapping):
            raise ExtractionError(field='entry', record=record)
        asset = entry.get('asset')
        if not isinstance(asset, Mapping):
            raise ExtractionError(field='asset', record=record)

        app_id = self._required(parse_int(asset.get('appid')), 'asset.appid', record)
        context_id = str(self._required(asset.get('contextid'), 'asset.contextid', record))
        asset_id = str(self._required(asset.get('id'), 'asset.id', record))

        try:
            description = assets[str(app_id)][context_id][asset_id]
        except (KeyError, TypeError) as e:
            raise ExtractionError(field='assets', record=record) from e

        price = parse_int(entry.get('price'))
        if price is None:
            price = parse_int(entry.get('paid_amount'))
        fee = parse_int(entry.get('fee'))
        if fee is None:
            fee = parse_int(entry.get('paid_fee')) or 0

        time_sold = None
        sold_at = parse_int(entry.get('time_sold'))
        if sold_at is not None:
            time_sold = datetime.fromtimestamp(sold_at, tz=timezone.utc)

        purchase_id = entry.get('purchaseid')

        return self._build(
            UserActivity,
            record,
            listing_id=str(self._required(entry.get('listingid'), 'listingid', record)),
            purchase_id=str(purchase_id) if purchase_id not in _MISSING else None,
            app_id=app_id,
            context_id=context_id,
            asset_id=asset_id,
            amount=parse_int(asset.get('amount')) or 1,
            price=self._required(price, 'price', record),
            fee=fee,
            currency_id=parse_int(entry.get('currencyid')),
            time_sold=time_sold,
            market_hash_name=self._required(description.get('market_hash_name'), 'market_hash_name', record),
            name=description.get('name'),
            icon_url=description.get('icon_url'),
        )

    def parse_activity_feed(self, payload: Mapping[str, Any], key: str) -> ActivityFeed:
        """Build an ActivityFeed from a ``recent``/``recentcompleted`` response.

        Args:
            payload: Decoded response
            key: ``listinginfo`` for new listings, ``purchaseinfo`` for
                completed purchases
        """
        record = "ActivityFeed"
        if not isinstance(payload, Mapping):
            raise ExtractionError(field=key, record=record)

        entries = payload.get(key) or {}
        if isinstance(entries, Mapping):
            entries = list(entries.values())
        if not isinstance(entries, list):
            raise ExtractionError(field=key, record=record)
        assets = payload.get('assets') or {}

        return self._build(
            ActivityFeed,
            record,
            listings=[self.parse_user_activity(entry, assets) for entry in entries],
            last_time=parse_int(payload.get('last_time')),
            last_listing=payload.get('last_listing'),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _required(value: Any, field: str, record: str) -> Any:
        if value in _MISSING:
            raise ExtractionError(field=field, record=record)
        return value

    @staticmethod
    def _build(model: Type[RecordT], record: str, **fields: Any) -> RecordT:
        try:
            return model(**fields)
        except ValidationError as e:
            errors = e.errors()
            field = ".".join(str(part) for part in errors[0]['loc']) if errors else None
            raise ExtractionError(field=field, record=record) from e

    @staticmethod
    def _price(text: str, field: str, record: str) -> int:
        try:
            return parse_price(text)
        except ValueError as e:
            raise ExtractionError(field=field, record=record) from e

    @staticmethod
    def _text(node: Tag, selector: str) -> Optional[str]:
        found = node.select_one(selector)
        if found is None:
            return None
        return clean_text(found.get_text(' '))

    @staticmethod
    def _select_self_or_descendant(node: Tag, selector: str) -> Optional[Tag]:
        classes = [part for part in selector.split('.') if part]
        if classes and all(cls in (node.get('class') or []) for cls in classes):
            return node
        return node.select_one(selector)

    @staticmethod
    def _link(fragment: Tag) -> Optional[str]:
        if fragment.name == 'a' and fragment.get('href'):
            return fragment['href']
        anchor = fragment.select_one('a.market_listing_row_link[href]')
        return anchor['href'] if anchor is not None else None

    @staticmethod
    def _ids_from_url(url: Optional[str]) -> tuple[Optional[int], Optional[str]]:
        if not url:
            return None, None
        try:
            return parse_listing_url(url)
        except ValueError:
            return None, None
