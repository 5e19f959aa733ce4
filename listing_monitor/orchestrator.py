import asyncio
from typing import Dict, List, Optional, Set

from loguru import logger

from listing_monitor.core.http_client import HttpClient
from listing_monitor.core.ledger import AnnouncementLedger, LedgerBase
from listing_monitor.core.models import ExchangeId
from listing_monitor.core.proxy_manager import ProxyRotator
from listing_monitor.db.cache.redis_cache import RedisLedger
from listing_monitor.db.config.loader import AppConfig
from listing_monitor.db.repository import ListingRepository
from listing_monitor.modules.parsers.classifier import TitleClassifier
from listing_monitor.modules.parsers.exchanges import AnnouncementFetcher
from listing_monitor.modules.parsers.exchanges.factory import FetcherFactory
from listing_monitor.modules.parsers.ticker_parser import SymbolExtractor
from listing_monitor.notifiers.dispatcher import NotificationDispatcher
from listing_monitor.pipeline import ListingPipeline


class Orchestrator:
    """Wires the pipeline together and fires a cycle every poll interval.

    A new cycle is started on every tick even if the previous one is still
    running; the ledger keeps overlapping cycles from double-processing.
    """

    def __init__(self, config: AppConfig):
        self.config = config
        self._log = logger.bind(component="orchestrator")
        self._running = True
        self._stop_event = asyncio.Event()
        self._cycle_tasks: Set[asyncio.Task] = set()
        self.http_clients: List[HttpClient] = []
        self.pipeline: Optional[ListingPipeline] = None

    async def initialize_components(self):
        general = self.config.general

        self.ledger = self._create_ledger()

        self.repo = ListingRepository(general.db_path)
        await self.repo.init()

        self.notifier = NotificationDispatcher.from_config(self.config.notifications)
        fetchers = self._init_fetchers()

        self.pipeline = ListingPipeline(
            fetchers=fetchers,
            ledger=self.ledger,
            store=self.repo,
            notifier=self.notifier,
            classifier=TitleClassifier(general.classifier_keywords, general.classifier_exclude_keywords),
            extractor=SymbolExtractor(reserved_symbols=general.reserved_symbols),
            store_timeout=general.store_timeout,
            notify_timeout=general.notify_timeout,
        )
        await self.pipeline.seed_from_store()

        channels = ", ".join(c.name for c in self.notifier.channels) or "none"
        self._log.info(f"Monitoring {', '.join(e.value for e in fetchers)} | channels: {channels}")

    def _create_ledger(self) -> LedgerBase:
        general = self.config.general
        if general.ledger == "redis":
            return RedisLedger(general.redis_url, general.use_fakeredis)
        return AnnouncementLedger()

    def _init_fetchers(self) -> Dict[ExchangeId, AnnouncementFetcher]:
        """Create one fetcher with its own HTTP client per enabled exchange"""
        fetchers = {}

        for name, exc_config in self.config.exchanges.items():
            if not exc_config.enabled:
                continue

            try:
                http_client = HttpClient(
                    exchange_name=name,
                    timeout=exc_config.request.timeout,
                    headers=exc_config.headers,
                    proxy_rotator=ProxyRotator(exc_config.proxies),
                    attempts=exc_config.request.attempts,
                )
                self.http_clients.append(http_client)

                fetcher = FetcherFactory.create(exc_config, http_client)
                fetchers[fetcher.exchange_id] = fetcher

            except Exception as e:
                self._log.error(f"Failed to init {name}: {e}")

        if exc_proxies := [n for n, c in self.config.exchanges.items() if c.enabled and c.has_proxy]:
            self._log.info(f"Proxies configured for: {', '.join(exc_proxies)}")

        return fetchers

    async def run(self):
        """Main loop: one cycle per tick until stopped"""
        await self.initialize_components()
        poll_interval = self.config.general.poll_interval
        self._log.info(f"System initialized, polling every {poll_interval}s")

        stats_task = asyncio.create_task(self._stats_reporter())
        try:
            while self._running:
                task = asyncio.create_task(self._run_cycle())
                self._cycle_tasks.add(task)
                task.add_done_callback(self._cycle_tasks.discard)

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=poll_interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            stats_task.cancel()

    async def _run_cycle(self):
        try:
            report = await self.pipeline.run_cycle()
            if report.new_listings:
                self._log.info(f"Cycle finished with {report.new_listings} new listing(s)")
        except Exception as e:
            self._log.error(f"❌ Cycle error: {e}")

    async def _stats_reporter(self, report_interval: float = 60):
        """Periodically report per-exchange health"""
        while self._running:
            await asyncio.sleep(report_interval)

            summary = []
            for exchange_id, status in self.pipeline.status.items():
                line = f"📊{exchange_id.value.capitalize()}: {status.status.value} {status.response_time_ms}ms"
                if status.error_message:
                    line += f" ({status.error_message})"
                summary.append(line)

            if summary:
                self._log.info(" | ".join(summary))

    def stop(self):
        self._running = False
        self._stop_event.set()

    async def cleanup(self):
        """Let in-flight cycles finish, then release resources"""
        self.stop()

        if self._cycle_tasks:
            self._log.info(f"Waiting for {len(self._cycle_tasks)} running cycle(s)")
            await asyncio.gather(*self._cycle_tasks, return_exceptions=True)

        for http_client in self.http_clients:
            await http_client.close()

        if self.pipeline:
            await self.notifier.close()
            await self.ledger.close()

        self._log.info("Cleanup complete")
