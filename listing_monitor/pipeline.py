import asyncio
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional

from loguru import logger

from listing_monitor.core.interfaces import ListingStore, Notifier
from listing_monitor.core.ledger import LedgerBase
from listing_monitor.core.models import (
    Announcement,
    DuplicateListingError,
    ExchangeId,
    ExtractedCoin,
    FetchResult,
    ListingEvent,
)
from listing_monitor.modules.parsers.classifier import TitleClassifier
from listing_monitor.modules.parsers.exchanges import AnnouncementFetcher
from listing_monitor.modules.parsers.ticker_parser import SymbolExtractor


class Outcome(str, Enum):
    """Where a single announcement left the pipeline"""
    KNOWN = "known"
    NOT_LISTING = "not_listing"
    NOT_EXTRACTED = "not_extracted"
    IN_FLIGHT = "in_flight"
    DUPLICATE = "duplicate"
    STORE_FAILED = "store_failed"
    NOTIFY_FAILED = "notify_failed"
    NOTIFIED = "notified"


class ExchangeHealth(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    ERROR = "error"


@dataclass
class ExchangeStatus:
    status: ExchangeHealth
    last_check: datetime
    response_time_ms: int
    error_message: Optional[str] = None
    new_listings: int = 0


@dataclass
class ExchangeReport:
    exchange_id: ExchangeId
    available: bool = True
    fetched: int = 0
    outcomes: Counter = field(default_factory=Counter)

    @property
    def new_listings(self) -> int:
        return self.outcomes[Outcome.NOTIFIED] + self.outcomes[Outcome.NOTIFY_FAILED]


@dataclass
class CycleReport:
    exchanges: Dict[ExchangeId, ExchangeReport] = field(default_factory=dict)

    @property
    def new_listings(self) -> int:
        return sum(r.new_listings for r in self.exchanges.values())


class ListingPipeline:
    """Turns exchange announcements into at most one stored and notified listing each.

    Per announcement: dedup check, classify, extract, claim, persist, notify,
    mark known. Store failures release the claim so the next cycle retries;
    notification failures are only logged because the listing is already
    recorded. ``run_cycle`` never raises.
    """

    def __init__(
            self,
            fetchers: Dict[ExchangeId, AnnouncementFetcher],
            ledger: LedgerBase,
            store: ListingStore,
            notifier: Notifier,
            classifier: Optional[TitleClassifier] = None,
            extractor: Optional[SymbolExtractor] = None,
            store_timeout: float = 10.0,
            notify_timeout: float = 30.0,
            clock: Optional[Callable[[], datetime]] = None,
    ):
        self.fetchers = dict(fetchers)
        self.ledger = ledger
        self.store = store
        self.notifier = notifier
        self.classifier = classifier or TitleClassifier()
        self.extractor = extractor or SymbolExtractor()
        self.store_timeout = store_timeout
        self.notify_timeout = notify_timeout
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self.status: Dict[ExchangeId, ExchangeStatus] = {}
        self._log = logger.bind(component="pipeline")

    async def seed_from_store(self) -> int:
        """Load announcement keys of stored listings so restarts do not re-alert"""
        try:
            listings = await asyncio.wait_for(self.store.list_all(), self.store_timeout)
        except Exception as e:
            self._log.error(f"Could not load stored listings, starting with empty ledger: {e}")
            return 0

        return await self.ledger.seed(listing.announcement_key for listing in listings)

    async def run_cycle(self) -> CycleReport:
        """Run every exchange concurrently; failures stay inside their exchange"""
        exchanges: List[ExchangeId] = list(self.fetchers)
        results = await asyncio.gather(
            *(self.run_exchange(exchange_id) for exchange_id in exchanges),
            return_exceptions=True
        )

        report = CycleReport()
        for exchange_id, result in zip(exchanges, results):
            if isinstance(result, BaseException):
                self._log.error(f"{exchange_id.value} run crashed: {result!r}")
                report.exchanges[exchange_id] = ExchangeReport(exchange_id, available=False)
            else:
                report.exchanges[exchange_id] = result

        return report

    async def run_exchange(self, exchange_id: ExchangeId) -> ExchangeReport:
        log = self._log.bind(exchange=exchange_id.value)
        report = ExchangeReport(exchange_id)
        loop = asyncio.get_running_loop()
        start_time = loop.time()

        try:
            result: FetchResult = await self.fetchers[exchange_id].fetch()
        except Exception as e:
            log.error(f"Fetcher raised: {type(e).__name__}: {e}")
            result = FetchResult.unavailable()

        report.available = result.available
        report.fetched = len(result.announcements)
        response_time_ms = int((loop.time() - start_time) * 1000)

        for announcement in result.announcements:
            try:
                outcome = await self.process_announcement(announcement)
            except Exception as e:
                log.error(f"Unexpected error on {announcement.key}: {type(e).__name__}: {e}")
                outcome = Outcome.STORE_FAILED
            report.outcomes[outcome] += 1

        self._update_status(exchange_id, report, response_time_ms)

        log_msg = f"{report.new_listings} new / {report.fetched} fetched / {response_time_ms}ms"
        if report.new_listings:
            log.info(f"✅ {log_msg}")
        else:
            log.debug(log_msg)
        return report

    async def process_announcement(self, announcement: Announcement) -> Outcome:
        key = announcement.key
        log = self._log.bind(exchange=announcement.exchange_id.value)

        if await self.ledger.is_known(key):
            return Outcome.KNOWN

        if not self.classifier.is_listing_announcement(announcement.title):
            log.debug(f"Not a listing announcement: {announcement.title}")
            return Outcome.NOT_LISTING

        coin = self.extractor.extract(announcement.title)
        if not coin:
            log.info(f"Could not extract coin from: {announcement.title}")
            return Outcome.NOT_EXTRACTED

        if not await self.ledger.claim(key):
            log.debug(f"{key} is being handled by another run")
            return Outcome.IN_FLIGHT

        marked = False
        try:
            event = self.build_event(announcement, coin)
            log.info(f"🚀 Listing detected: {event.market_id} | {announcement.title}")

            try:
                await asyncio.wait_for(self.store.create(event), self.store_timeout)
            except DuplicateListingError:
                await self.ledger.mark_known(key)
                marked = True
                log.info(f"{key} already recorded, not notifying again")
                return Outcome.DUPLICATE
            except asyncio.TimeoutError:
                log.error(f"Store timed out for {key}, will retry next cycle")
                return Outcome.STORE_FAILED
            except Exception as e:
                log.error(f"Failed to save listing for {key}: {type(e).__name__}: {e}")
                return Outcome.STORE_FAILED

            outcome = Outcome.NOTIFIED
            try:
                await asyncio.wait_for(self.notifier.notify_immediate(event), self.notify_timeout)
            except asyncio.TimeoutError:
                log.error(f"Notification timed out for {event.market_id}")
                outcome = Outcome.NOTIFY_FAILED
            except Exception as e:
                log.error(f"Notification failed for {event.market_id}: {e}")
                outcome = Outcome.NOTIFY_FAILED

            await self.ledger.mark_known(key)
            marked = True
            return outcome
        finally:
            if not marked:
                await self.ledger.release(key)

    def build_event(self, announcement: Announcement, coin: ExtractedCoin) -> ListingEvent:
        listed_at = announcement.published_at
        if listed_at is None:
            listed_at = self._clock()
            self._log.warning(f"{announcement.key} has no publish time, using processing time")

        return ListingEvent(
            exchange_id=announcement.exchange_id,
            symbol=coin.symbol,
            display_name=coin.display_name or coin.symbol,
            listed_at=listed_at,
            market_id=coin.market_id,
            source_announcement_key=announcement.key,
            source_title=announcement.title,
            source_url=announcement.source_url,
            is_from_announcement=True,
        )

    def _update_status(self, exchange_id: ExchangeId, report: ExchangeReport, response_time_ms: int):
        if not report.available:
            health, error = ExchangeHealth.ERROR, "announcement feed unavailable"
        elif report.outcomes[Outcome.STORE_FAILED] or report.outcomes[Outcome.NOTIFY_FAILED]:
            health, error = ExchangeHealth.DEGRADED, "some listings could not be stored or notified"
        else:
            health, error = ExchangeHealth.HEALTHY, None

        self.status[exchange_id] = ExchangeStatus(
            status=health,
            last_check=self._clock(),
            response_time_ms=response_time_ms,
            error_message=error,
            new_listings=report.new_listings,
        )
