import asyncio
from typing import List, Optional


class ProxyRotator:
    """Round-robin proxy rotation for a single exchange"""

    def __init__(self, proxies: Optional[List[str]] = None):
        self._proxies = list(proxies or [])
        self._index = 0
        self._lock = asyncio.Lock()

    def __bool__(self) -> bool:
        return bool(self._proxies)

    async def next_proxy(self) -> Optional[str]:
        if not self._proxies:
            return None

        async with self._lock:
            proxy = self._proxies[self._index]
            self._index = (self._index + 1) % len(self._proxies)
            return proxy
