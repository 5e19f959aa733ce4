import asyncio

import fakeredis
import fakeredis.aioredis
import pytest

from listing_monitor.core.ledger import AnnouncementLedger, LedgerBase
from listing_monitor.db.cache.redis_cache import RedisLedger


def memory_ledger():
    return AnnouncementLedger()


def redis_ledger():
    client = fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    return RedisLedger(client=client)


LEDGERS = [memory_ledger, redis_ledger]


@pytest.mark.parametrize("make_ledger", LEDGERS)
def test_mark_known_is_idempotent(make_ledger):
    async def _run():
        ledger = make_ledger()
        assert not await ledger.is_known("upbit:1")

        await ledger.mark_known("upbit:1")
        await ledger.mark_known("upbit:1")

        assert await ledger.is_known("upbit:1")
        assert not await ledger.is_known("bithumb:1")
        await ledger.close()

    asyncio.run(_run())


@pytest.mark.parametrize("make_ledger", LEDGERS)
def test_claim_is_exclusive_until_released(make_ledger):
    async def _run():
        ledger = make_ledger()

        assert await ledger.claim("upbit:7")
        assert not await ledger.claim("upbit:7")

        await ledger.release("upbit:7")
        assert not await ledger.is_known("upbit:7")
        assert await ledger.claim("upbit:7")
        await ledger.close()

    asyncio.run(_run())


@pytest.mark.parametrize("make_ledger", LEDGERS)
def test_known_key_cannot_be_claimed(make_ledger):
    async def _run():
        ledger = make_ledger()
        assert await ledger.claim("upbit:7")
        await ledger.mark_known("upbit:7")

        assert not await ledger.claim("upbit:7")
        await ledger.release("upbit:7")
        assert await ledger.is_known("upbit:7")
        await ledger.close()

    asyncio.run(_run())


@pytest.mark.parametrize("make_ledger", LEDGERS)
def test_seed_loads_keys(make_ledger):
    async def _run():
        ledger = make_ledger()
        added = await ledger.seed(["upbit:42", "bithumb:9", "", "upbit:42"])

        assert added == 2
        assert await ledger.is_known("upbit:42")
        assert await ledger.is_known("bithumb:9")
        assert await ledger.seed([]) == 0
        await ledger.close()

    asyncio.run(_run())


def test_concurrent_claims_yield_single_winner():
    async def _run():
        ledger = AnnouncementLedger()
        results = await asyncio.gather(*(ledger.claim("upbit:5") for _ in range(20)))
        return results

    results = asyncio.run(_run())
    assert results.count(True) == 1


def test_redis_ledgers_share_state_through_the_server():
    server = fakeredis.FakeServer()

    def make():
        return RedisLedger(client=fakeredis.aioredis.FakeRedis(server=server, decode_responses=True))

    first, second = make(), make()

    async def _run():
        assert await first.claim("bithumb:9")
        assert not await second.claim("bithumb:9")
        await first.mark_known("bithumb:9")
        return await second.is_known("bithumb:9")

    assert asyncio.run(_run())
    assert isinstance(first, LedgerBase)
    assert not isinstance(first, AnnouncementLedger)
    assert not hasattr(first, "_known")
