from abc import ABC, abstractmethod
from typing import Optional

import aiohttp
from loguru import logger

from listing_monitor.core.models import ListingEvent
from listing_monitor.notifiers.formatter import MessageFormatter


class NotificationChannel(ABC):
    """One delivery channel with a persistent aiohttp session"""

    name = "channel"

    def __init__(self, timeout: float = 20, formatter: Optional[MessageFormatter] = None):
        self._timeout = timeout
        self.formatter = formatter or MessageFormatter()
        self._session: Optional[aiohttp.ClientSession] = None
        self._log = logger.bind(component=self.name)

    def _get_session(self) -> aiohttp.ClientSession:
        if not self._session or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self._timeout))
        return self._session

    @abstractmethod
    async def send(self, event: ListingEvent) -> bool:
        """True when the message was accepted"""

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
