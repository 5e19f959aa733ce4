import asyncio
from abc import ABC, abstractmethod
from typing import Iterable, Set

from loguru import logger


class LedgerBase(ABC):
    """Record of announcement keys that were already acted upon.

    ``claim`` reserves a key for one pipeline run so that overlapping cycles
    never hand the same announcement to the store twice. A claim ends either
    with ``mark_known`` (key becomes permanent) or ``release`` (key can be
    retried by a later cycle).
    """

    @abstractmethod
    async def is_known(self, key: str) -> bool:
        pass

    @abstractmethod
    async def claim(self, key: str) -> bool:
        """False when the key is known or another run holds it"""

    @abstractmethod
    async def release(self, key: str) -> None:
        pass

    @abstractmethod
    async def mark_known(self, key: str) -> None:
        pass

    @abstractmethod
    async def seed(self, keys: Iterable[str]) -> int:
        """Bulk-load known keys, returns how many were new"""

    async def close(self) -> None:
        pass


class AnnouncementLedger(LedgerBase):
    """In-process ledger; claims are serialized by a lock"""

    def __init__(self):
        self._known: Set[str] = set()
        self._in_flight: Set[str] = set()
        self._lock = asyncio.Lock()
        self._log = logger.bind(component="ledger")

    async def is_known(self, key: str) -> bool:
        return key in self._known

    async def claim(self, key: str) -> bool:
        async with self._lock:
            if key in self._known or key in self._in_flight:
                return False
            self._in_flight.add(key)
            return True

    async def release(self, key: str) -> None:
        async with self._lock:
            self._in_flight.discard(key)

    async def mark_known(self, key: str) -> None:
        async with self._lock:
            self._in_flight.discard(key)
            self._known.add(key)

    async def seed(self, keys: Iterable[str]) -> int:
        async with self._lock:
            before = len(self._known)
            self._known.update(k for k in keys if k)
            added = len(self._known) - before

        self._log.info(f"Seeded {added} known announcements")
        return added
