"""listing_monitor/db/cache/redis_cache.py"""
from typing import Iterable, Optional

import redis.asyncio as redis
from loguru import logger

from listing_monitor.core.ledger import LedgerBase


class RedisLedger(LedgerBase):
    """Redis-backed ledger shared by every monitor process pointing at the same server"""

    KNOWN_PREFIX = "ann:known:"
    CLAIM_PREFIX = "ann:claim:"

    def __init__(self, redis_url: str = "redis://localhost:6379", use_fakeredis: bool = False,
                 claim_ttl: int = 120, client: Optional[redis.Redis] = None):
        self._claim_ttl = claim_ttl
        self._log = logger.bind(component="cache")

        if client is not None:
            self._redis = client
        elif use_fakeredis:
            import fakeredis.aioredis
            self._redis = fakeredis.aioredis.FakeRedis(decode_responses=True)
        else:
            self._redis = redis.from_url(redis_url, decode_responses=True)

    async def is_known(self, key: str) -> bool:
        return bool(await self._redis.exists(self.KNOWN_PREFIX + key))

    async def claim(self, key: str) -> bool:
        """Reserve the key; SET NX makes the reservation atomic across processes"""
        if await self.is_known(key):
            return False
        # Claim expires so a crashed worker cannot block the key forever
        result = await self._redis.set(self.CLAIM_PREFIX + key, "1", nx=True, ex=self._claim_ttl)
        return bool(result)

    async def release(self, key: str) -> None:
        await self._redis.delete(self.CLAIM_PREFIX + key)

    async def mark_known(self, key: str) -> None:
        pipe = self._redis.pipeline()
        pipe.set(self.KNOWN_PREFIX + key, "1")
        pipe.delete(self.CLAIM_PREFIX + key)
        await pipe.execute()

    async def seed(self, keys: Iterable[str]) -> int:
        keys = [k for k in keys if k]
        if not keys:
            return 0

        pipe = self._redis.pipeline()
        for key in keys:
            pipe.set(self.KNOWN_PREFIX + key, "1", nx=True)

        # True for every key that was not stored yet
        results = await pipe.execute()
        added = sum(1 for r in results if r)
        self._log.info(f"Seeded {added} known announcements")
        return added

    async def close(self) -> None:
        await self._redis.aclose()
