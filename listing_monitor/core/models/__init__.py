from .announcement import KST, Announcement, ExchangeId, FetchResult, make_announcement_key
from .listing import DEFAULT_QUOTE_CURRENCY, ExtractedCoin, ListingEvent, StoredListing
from .exceptions import (
    ListingMonitorError,
    InvalidResponseException,
    StoreError,
    DuplicateListingError,
    NotificationError,
)
