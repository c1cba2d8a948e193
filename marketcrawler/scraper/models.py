"""Pydantic data models for market records.

Records are built once by the parsers and are immutable afterwards.
ListingItem can still be annotated with an order book histogram
or recent activity fetched by a separate request.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FrozenRecord(BaseModel):
    """Base for immutable records."""

    model_config = ConfigDict(frozen=True)


class Listing(FrozenRecord):
    """Summary of one search result row."""

    name: str = Field(..., min_length=1, description="Display name")
    market_hash_name: str = Field(..., min_length=1, description="Market hash name used in listing URLs")
    app_id: int = Field(..., ge=0, description="Steam app id of the game")
    game_name: Optional[str] = Field(default=None, description="Game display name")
    url: Optional[str] = Field(default=None, description="Listing page URL")
    image: Optional[str] = Field(default=None, description="Item image URL")
    quantity: int = Field(..., ge=0, description="Number of active sell listings")
    price: int = Field(..., ge=0, description="Starting price in minor units")
    sale_price: Optional[int] = Field(default=None, ge=0, description="Price without fees in minor units")
    currency: Optional[int] = Field(default=None, description="Steam currency code of the prices")
    popularity: Optional[float] = Field(default=None, ge=0, description="Popularity index")

    @field_validator('url', 'image')
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate URL format."""
        if v is not None and not v.startswith(('http://', 'https://')):
            raise ValueError("URL must start with http:// or https://")
        return v


class PricePoint(FrozenRecord):
    """One point of an item's median sale price history."""

    time: str
    price: float = Field(..., ge=0)
    volume: int = Field(..., ge=0)


class OrderGraphPoint(FrozenRecord):
    """Cumulative order book point: at ``price`` there are ``quantity`` orders."""

    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=0)
    label: str = ""


class Histogram(FrozenRecord):
    """Current buy/sell order book snapshot for an item."""

    highest_buy_order: Optional[int] = Field(default=None, ge=0)
    lowest_sell_order: Optional[int] = Field(default=None, ge=0)
    buy_order_count: Optional[int] = Field(default=None, ge=0)
    sell_order_count: Optional[int] = Field(default=None, ge=0)
    buy_order_graph: list[OrderGraphPoint] = Field(default_factory=list)
    sell_order_graph: list[OrderGraphPoint] = Field(default_factory=list)
    price_prefix: str = ""
    price_suffix: str = ""


class ActivityEntry(FrozenRecord):
    """One line of an item's order book activity ticker."""

    text: str
    type: Optional[str] = None
    price: Optional[int] = None
    quantity: Optional[int] = None
    time: Optional[int] = None


class RecentActivity(FrozenRecord):
    """Recent order book activity for an item."""

    timestamp: Optional[int] = None
    entries: list[ActivityEntry] = Field(default_factory=list)


class ListingItem(FrozenRecord):
    """Detail record for an item's market page.

    ``histogram`` and ``recent_activity`` are filled only when the caller
    asks for them through :meth:`attach_histogram` and
    :meth:`attach_recent_activity`. Every other field is read-only.
    """

    app_id: int = Field(..., ge=0)
    market_hash_name: str = Field(..., min_length=1)
    name_id: int = Field(..., gt=0, description="Internal id used for order book queries")
    name: Optional[str] = None
    image: Optional[str] = None
    price_history: list[PricePoint] = Field(default_factory=list)
    histogram: Optional[Histogram] = None
    recent_activity: Optional[RecentActivity] = None

    def attach_histogram(self, histogram: Histogram) -> "ListingItem":
        return self._annotate("histogram", histogram)

    def attach_recent_activity(self, activity: RecentActivity) -> "ListingItem":
        return self._annotate("recent_activity", activity)

    def _annotate(self, field: str, value: Any) -> "ListingItem":
        object.__setattr__(self, field, value)
        self.__pydantic_fields_set__.add(field)
        return self


class ListingSale(FrozenRecord):
    """One active sell listing of an item."""

    listing_id: str = Field(..., min_length=1)
    price: int = Field(..., ge=0, description="Price including fees in minor units")
    price_without_fee: Optional[int] = Field(default=None, ge=0)
    asset_id: str = Field(..., min_length=1)
    app_id: int = Field(..., ge=0)
    context_id: str = Field(..., min_length=1)
    amount: int = Field(default=1, ge=0)
    inspect_link: Optional[str] = None


class UserActivity(FrozenRecord):
    """A recently created or completed market listing."""

    listing_id: str = Field(..., min_length=1)
    purchase_id: Optional[str] = None
    app_id: int = Field(..., ge=0)
    context_id: str = Field(..., min_length=1)
    asset_id: str = Field(..., min_length=1)
    amount: int = Field(default=1, ge=0)
    price: int = Field(..., ge=0, description="Price paid or asked, without fees")
    fee: int = Field(default=0, ge=0)
    currency_id: Optional[int] = None
    time_sold: Optional[datetime] = None
    market_hash_name: str = Field(..., min_length=1)
    name: Optional[str] = None
    icon_url: Optional[str] = None


class ActivityFeed(FrozenRecord):
    """Recent market activity plus the cursor returned with it."""

    listings: list[UserActivity] = Field(default_factory=list)
    last_time: Optional[int] = None
    last_listing: Optional[str] = None

    @field_validator('last_listing', mode='before')
    @classmethod
    def validate_last_listing(cls, v: Any) -> Optional[str]:
        """Steam sends the cursor as a number or a string."""
        return None if v is None else str(v)
