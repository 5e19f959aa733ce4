"""Shared fakes for pipeline tests."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Iterable

import pytest

from listing_monitor.core.interfaces import ListingStore, Notifier
from listing_monitor.core.models import (
    KST,
    Announcement,
    DuplicateListingError,
    ExchangeId,
    FetchResult,
    ListingEvent,
    NotificationError,
    StoreError,
    StoredListing,
)


def make_announcement(native_id: str, title: str, exchange: ExchangeId = ExchangeId.UPBIT,
                      published_at: datetime | None = datetime(2024, 3, 5, 14, 0, tzinfo=KST)) -> Announcement:
    return Announcement(
        exchange_id=exchange,
        native_id=native_id,
        title=title,
        published_at=published_at,
        source_url=f"https://example.com/{exchange.value}/{native_id}",
    )


class FakeFetcher:
    def __init__(self, exchange_id: ExchangeId, announcements: Iterable[Announcement] = (), available: bool = True):
        self.exchange_id = exchange_id
        self.announcements = list(announcements)
        self.available = available
        self.calls = 0

    async def fetch(self) -> FetchResult:
        self.calls += 1
        await asyncio.sleep(0)
        if not self.available:
            return FetchResult.unavailable()
        return FetchResult(list(self.announcements), available=True, total=len(self.announcements))


class CrashingFetcher:
    async def fetch(self) -> FetchResult:
        raise RuntimeError("boom")


class MemoryStore(ListingStore):
    """In-memory store with the same uniqueness rules as the SQLite repository"""

    def __init__(self, existing: Iterable[ListingEvent] = ()):
        self.events: list[ListingEvent] = []
        self.fail_keys: set[str] = set()
        self.fail_list_all = False
        self.delay = 0.0
        for event in existing:
            self.events.append(event)

    async def create(self, event: ListingEvent) -> StoredListing:
        # Yield so concurrent runs interleave between check and insert
        await asyncio.sleep(self.delay)
        if event.source_announcement_key in self.fail_keys:
            raise StoreError("storage unavailable")

        for stored in self.events:
            if (stored.source_announcement_key == event.source_announcement_key
                    or (stored.exchange_id, stored.market_id) == (event.exchange_id, event.market_id)):
                raise DuplicateListingError(event.source_announcement_key, event.market_id)

        self.events.append(event)
        return StoredListing(id=str(len(self.events)), event=event, created_at=event.listed_at)

    async def list_all(self) -> list[StoredListing]:
        if self.fail_list_all:
            raise StoreError("storage unavailable")
        return [StoredListing(id=str(i), event=e, created_at=e.listed_at) for i, e in enumerate(self.events)]


class RecordingNotifier(Notifier):
    def __init__(self, fail: bool = False, delay: float = 0.0):
        self.events: list[ListingEvent] = []
        self.fail = fail
        self.delay = delay

    async def notify_immediate(self, event: ListingEvent) -> None:
        await asyncio.sleep(self.delay)
        self.events.append(event)
        if self.fail:
            raise NotificationError("all channels down", failed_channels=["telegram"])


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
