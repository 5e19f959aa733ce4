from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from listing_monitor.core.models.announcement import ExchangeId

DEFAULT_QUOTE_CURRENCY = "KRW"


@dataclass(frozen=True)
class ExtractedCoin:
    symbol: str
    display_name: Optional[str] = None
    quote_currency: str = DEFAULT_QUOTE_CURRENCY

    @property
    def market_id(self) -> str:
        return f"{self.quote_currency}-{self.symbol}"


@dataclass(frozen=True)
class ListingEvent:
    exchange_id: ExchangeId
    symbol: str
    display_name: str
    listed_at: datetime
    market_id: str
    source_announcement_key: str
    source_title: str
    source_url: str
    is_from_announcement: bool = True


@dataclass(frozen=True)
class StoredListing:
    id: str
    event: ListingEvent
    created_at: datetime

    @property
    def announcement_key(self) -> str:
        return self.event.source_announcement_key
