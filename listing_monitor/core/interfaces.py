from abc import ABC, abstractmethod
from typing import List

from listing_monitor.core.models import ListingEvent, StoredListing


class ListingStore(ABC):
    """Persists listing events produced by the pipeline"""

    @abstractmethod
    async def create(self, event: ListingEvent) -> StoredListing:
        """Record a new listing.

        Raises:
            DuplicateListingError: the announcement or market is already recorded
            StoreError: any other storage failure
        """

    @abstractmethod
    async def list_all(self) -> List[StoredListing]:
        pass


class Notifier(ABC):
    """Delivers a listing alert to every configured channel"""

    @abstractmethod
    async def notify_immediate(self, event: ListingEvent) -> None:
        """Raises NotificationError when delivery failed"""

    async def close(self) -> None:
        pass
