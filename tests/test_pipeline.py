import asyncio
from datetime import datetime, timezone

from conftest import (
    CrashingFetcher,
    FakeFetcher,
    MemoryStore,
    RecordingNotifier,
    make_announcement,
)
from listing_monitor.core.ledger import AnnouncementLedger
from listing_monitor.core.models import KST, ExchangeId, ListingEvent
from listing_monitor.pipeline import ExchangeHealth, ListingPipeline, Outcome

CYBER = "사이버(CYBER) KRW, USDT 마켓 디지털 자산 추가"
SD = "스테이더(SD) KRW 마켓 디지털 자산 추가"
ARKM = "아캄(ARKM) BTC 마켓 디지털 자산 추가"
MAINTENANCE = "시스템 점검 안내"


def build_pipeline(fetchers, store, notifier, ledger=None, **kwargs):
    return ListingPipeline(
        fetchers={f.exchange_id: f for f in fetchers},
        ledger=ledger or AnnouncementLedger(),
        store=store,
        notifier=notifier,
        **kwargs
    )


def test_listing_is_persisted_and_notified_once(store, notifier):
    fetcher = FakeFetcher(ExchangeId.UPBIT, [make_announcement("100", CYBER)])
    pipeline = build_pipeline([fetcher], store, notifier)

    async def _run():
        first = await pipeline.run_cycle()
        second = await pipeline.run_cycle()
        return first, second

    first, second = asyncio.run(_run())

    assert len(store.events) == 1
    assert len(notifier.events) == 1
    assert first.new_listings == 1
    assert second.new_listings == 0
    assert second.exchanges[ExchangeId.UPBIT].outcomes[Outcome.KNOWN] == 1


def test_event_fields(store, notifier):
    published = datetime(2024, 3, 5, 14, 0, tzinfo=KST)
    fetcher = FakeFetcher(ExchangeId.BITHUMB, [
        make_announcement("77", ARKM, exchange=ExchangeId.BITHUMB, published_at=published)
    ])
    pipeline = build_pipeline([fetcher], store, notifier)

    asyncio.run(pipeline.run_cycle())

    event: ListingEvent = store.events[0]
    assert event.exchange_id is ExchangeId.BITHUMB
    assert event.symbol == "ARKM"
    assert event.display_name == "아캄"
    assert event.market_id == "BTC-ARKM"
    assert event.listed_at == published
    assert event.source_announcement_key == "bithumb:77"
    assert event.source_title == ARKM
    assert event.source_url == "https://example.com/bithumb/77"
    assert event.is_from_announcement is True


def test_display_name_falls_back_to_symbol(store, notifier):
    fetcher = FakeFetcher(ExchangeId.UPBIT, [make_announcement("5", "CYBER KRW 마켓 디지털 자산 추가")])
    pipeline = build_pipeline([fetcher], store, notifier)

    asyncio.run(pipeline.run_cycle())

    assert store.events[0].display_name == "CYBER"


def test_missing_publish_time_uses_processing_time(store, notifier):
    now = datetime(2024, 6, 1, 0, 0, tzinfo=timezone.utc)
    fetcher = FakeFetcher(ExchangeId.UPBIT, [make_announcement("5", CYBER, published_at=None)])
    pipeline = build_pipeline([fetcher], store, notifier, clock=lambda: now)

    asyncio.run(pipeline.run_cycle())

    assert store.events[0].listed_at == now


def test_non_listing_and_unparseable_titles_are_skipped(store, notifier):
    fetcher = FakeFetcher(ExchangeId.UPBIT, [
        make_announcement("1", MAINTENANCE),
        make_announcement("2", "KRW 마켓 디지털 자산 추가"),
        make_announcement("3", SD),
    ])
    pipeline = build_pipeline([fetcher], store, notifier)

    report = asyncio.run(pipeline.run_cycle())

    outcomes = report.exchanges[ExchangeId.UPBIT].outcomes
    assert outcomes[Outcome.NOT_LISTING] == 1
    assert outcomes[Outcome.NOT_EXTRACTED] == 1
    assert [e.symbol for e in store.events] == ["SD"]


def test_unparseable_title_is_retried_after_title_edit(store, notifier):
    fetcher = FakeFetcher(ExchangeId.UPBIT, [make_announcement("9", "KRW 마켓 디지털 자산 추가")])
    pipeline = build_pipeline([fetcher], store, notifier)

    async def _run():
        await pipeline.run_cycle()
        fetcher.announcements = [make_announcement("9", CYBER)]
        await pipeline.run_cycle()

    asyncio.run(_run())

    assert [e.symbol for e in store.events] == ["CYBER"]


def test_seeded_ledger_suppresses_known_announcement(notifier):
    existing = ListingEvent(
        exchange_id=ExchangeId.UPBIT,
        symbol="CYBER",
        display_name="사이버",
        listed_at=datetime(2024, 1, 1, tzinfo=KST),
        market_id="KRW-CYBER",
        source_announcement_key="upbit:42",
        source_title=CYBER,
        source_url="",
    )
    store = MemoryStore([existing])
    fetcher = FakeFetcher(ExchangeId.UPBIT, [make_announcement("42", "사이버(CYBER) KRW 마켓 디지털 자산 추가 (수정)")])
    pipeline = build_pipeline([fetcher], store, notifier)

    async def _run():
        seeded = await pipeline.seed_from_store()
        report = await pipeline.run_cycle()
        return seeded, report

    seeded, report = asyncio.run(_run())

    assert seeded == 1
    assert report.new_listings == 0
    assert len(store.events) == 1
    assert notifier.events == []


def test_seed_failure_leaves_pipeline_running(notifier):
    store = MemoryStore()
    store.fail_list_all = True
    fetcher = FakeFetcher(ExchangeId.UPBIT, [make_announcement("1", CYBER)])
    pipeline = build_pipeline([fetcher], store, notifier)

    async def _run():
        assert await pipeline.seed_from_store() == 0
        return await pipeline.run_cycle()

    report = asyncio.run(_run())
    assert report.new_listings == 1


def test_store_failure_only_affects_that_announcement(store, notifier):
    fetcher = FakeFetcher(ExchangeId.UPBIT, [
        make_announcement("1", CYBER),
        make_announcement("2", SD),
        make_announcement("3", "원인치(1INCH) KRW 마켓 디지털 자산 추가"),
    ])
    store.fail_keys = {"upbit:2"}
    ledger = AnnouncementLedger()
    pipeline = build_pipeline([fetcher], store, notifier, ledger=ledger)

    async def _run():
        first = await pipeline.run_cycle()
        assert await ledger.is_known("upbit:1")
        assert not await ledger.is_known("upbit:2")
        assert await ledger.is_known("upbit:3")

        store.fail_keys = set()
        second = await pipeline.run_cycle()
        return first, second

    first, second = asyncio.run(_run())

    assert first.exchanges[ExchangeId.UPBIT].outcomes[Outcome.STORE_FAILED] == 1
    assert pipeline.status[ExchangeId.UPBIT].status is ExchangeHealth.HEALTHY
    assert [e.symbol for e in store.events] == ["CYBER", "1INCH", "SD"]
    assert [e.symbol for e in notifier.events] == ["CYBER", "1INCH", "SD"]
    assert second.new_listings == 1


def test_store_timeout_is_retried_next_cycle(notifier):
    store = MemoryStore()
    store.delay = 0.2
    fetcher = FakeFetcher(ExchangeId.UPBIT, [make_announcement("1", CYBER)])
    ledger = AnnouncementLedger()
    pipeline = build_pipeline([fetcher], store, notifier, ledger=ledger, store_timeout=0.01)

    async def _run():
        report = await pipeline.run_cycle()
        return report, await ledger.is_known("upbit:1"), await ledger.claim("upbit:1")

    report, known, claimable = asyncio.run(_run())

    assert report.exchanges[ExchangeId.UPBIT].outcomes[Outcome.STORE_FAILED] == 1
    assert not known
    assert claimable
    assert notifier.events == []


def test_notification_failure_still_marks_known(store):
    notifier = RecordingNotifier(fail=True)
    fetcher = FakeFetcher(ExchangeId.UPBIT, [make_announcement("1", CYBER)])
    pipeline = build_pipeline([fetcher], store, notifier)

    async def _run():
        first = await pipeline.run_cycle()
        second = await pipeline.run_cycle()
        return first, second

    first, second = asyncio.run(_run())

    assert first.exchanges[ExchangeId.UPBIT].outcomes[Outcome.NOTIFY_FAILED] == 1
    assert pipeline.status[ExchangeId.UPBIT].status is ExchangeHealth.HEALTHY
    assert second.exchanges[ExchangeId.UPBIT].outcomes[Outcome.KNOWN] == 1
    assert len(store.events) == 1
    # Not retried
    assert len(notifier.events) == 1


def test_notification_timeout_is_logged_only(store):
    notifier = RecordingNotifier(delay=0.2)
    fetcher = FakeFetcher(ExchangeId.UPBIT, [make_announcement("1", CYBER)])
    pipeline = build_pipeline([fetcher], store, notifier, notify_timeout=0.01)

    report = asyncio.run(pipeline.run_cycle())

    assert report.exchanges[ExchangeId.UPBIT].outcomes[Outcome.NOTIFY_FAILED] == 1
    assert len(store.events) == 1


def test_duplicate_in_store_is_treated_as_known(notifier):
    # Same market announced twice under different notice ids
    store = MemoryStore()
    fetcher = FakeFetcher(ExchangeId.UPBIT, [
        make_announcement("1", CYBER),
        make_announcement("2", "사이버(CYBER) KRW 마켓 거래지원 개시"),
    ])
    ledger = AnnouncementLedger()
    pipeline = build_pipeline([fetcher], store, notifier, ledger=ledger)

    async def _run():
        report = await pipeline.run_cycle()
        return report, await ledger.is_known("upbit:2")

    report, known = asyncio.run(_run())

    assert report.exchanges[ExchangeId.UPBIT].outcomes[Outcome.DUPLICATE] == 1
    assert known
    assert len(store.events) == 1
    assert len(notifier.events) == 1


def test_overlapping_cycles_do_not_double_fire(notifier):
    store = MemoryStore()
    store.delay = 0.01
    announcements = [make_announcement("1", CYBER), make_announcement("2", SD)]
    fetcher = FakeFetcher(ExchangeId.UPBIT, announcements)
    pipeline = build_pipeline([fetcher], store, notifier)

    async def _run():
        return await asyncio.gather(pipeline.run_cycle(), pipeline.run_cycle(), pipeline.run_cycle())

    reports = asyncio.run(_run())

    assert sorted(e.symbol for e in store.events) == ["CYBER", "SD"]
    assert len(notifier.events) == 2
    assert sum(r.new_listings for r in reports) == 2


def test_overlapping_pipelines_sharing_a_store_do_not_double_notify(notifier):
    # Two processes with separate ledgers: the store's uniqueness is the backstop
    store = MemoryStore()
    store.delay = 0.01
    first = build_pipeline([FakeFetcher(ExchangeId.UPBIT, [make_announcement("1", CYBER)])], store, notifier)
    second = build_pipeline([FakeFetcher(ExchangeId.UPBIT, [make_announcement("1", CYBER)])], store, notifier)

    async def _run():
        await asyncio.gather(first.run_cycle(), second.run_cycle())

    asyncio.run(_run())

    assert len(store.events) == 1
    assert len(notifier.events) == 1


def test_exchanges_are_isolated(store, notifier):
    upbit = FakeFetcher(ExchangeId.UPBIT, available=False)
    bithumb = FakeFetcher(ExchangeId.BITHUMB, [make_announcement("3", SD, exchange=ExchangeId.BITHUMB)])
    pipeline = build_pipeline([upbit, bithumb], store, notifier)

    report = asyncio.run(pipeline.run_cycle())

    assert not report.exchanges[ExchangeId.UPBIT].available
    assert report.exchanges[ExchangeId.BITHUMB].new_listings == 1
    assert pipeline.status[ExchangeId.UPBIT].status is ExchangeHealth.ERROR
    assert pipeline.status[ExchangeId.BITHUMB].status is ExchangeHealth.HEALTHY


def test_crashing_fetcher_never_escapes_run_cycle(store, notifier):
    bithumb = FakeFetcher(ExchangeId.BITHUMB, [make_announcement("3", SD, exchange=ExchangeId.BITHUMB)])
    pipeline = ListingPipeline(
        fetchers={ExchangeId.UPBIT: CrashingFetcher(), ExchangeId.BITHUMB: bithumb},
        ledger=AnnouncementLedger(),
        store=store,
        notifier=notifier,
    )

    report = asyncio.run(pipeline.run_cycle())

    assert not report.exchanges[ExchangeId.UPBIT].available
    assert report.exchanges[ExchangeId.BITHUMB].new_listings == 1


def test_feed_order_is_preserved(store, notifier):
    fetcher = FakeFetcher(ExchangeId.UPBIT, [
        make_announcement("9", SD),
        make_announcement("3", CYBER),
        make_announcement("5", ARKM),
    ])
    pipeline = build_pipeline([fetcher], store, notifier)

    asyncio.run(pipeline.run_cycle())

    assert [e.symbol for e in notifier.events] == ["SD", "CYBER", "ARKM"]


def test_delisting_notice_is_not_alerted(store, notifier):
    fetcher = FakeFetcher(ExchangeId.UPBIT, [make_announcement("300", "[거래지원종료] 사이버(CYBER) 거래지원 종료 안내")])
    pipeline = build_pipeline([fetcher], store, notifier)

    report = asyncio.run(pipeline.run_cycle())

    assert not store.events
    assert not notifier.events
    assert report.exchanges[ExchangeId.UPBIT].outcomes[Outcome.NOT_LISTING] == 1
