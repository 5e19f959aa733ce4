class ListingMonitorError(Exception):
    """Base error for the listing monitor"""


class InvalidResponseException(ListingMonitorError):
    """Exchange endpoint answered with a non-2xx status"""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class StoreError(ListingMonitorError):
    """Listing store could not accept or return records"""


class DuplicateListingError(StoreError):
    """Listing for this announcement or market is already recorded"""

    def __init__(self, announcement_key: str, market_id: str = ""):
        super().__init__(f"Listing already recorded: {announcement_key} {market_id}".strip())
        self.announcement_key = announcement_key
        self.market_id = market_id


class NotificationError(ListingMonitorError):
    """One or more notification channels failed"""

    def __init__(self, message: str, failed_channels=None):
        super().__init__(message)
        self.failed_channels = list(failed_channels or [])
