from typing import Dict, Optional
from urllib.parse import urlparse

from curl_cffi.requests import AsyncSession
from loguru import logger
from tenacity import retry, stop_after_attempt, wait_exponential

from listing_monitor.core.models.exceptions import InvalidResponseException
from listing_monitor.core.proxy_manager import ProxyRotator
from listing_monitor.utils.tools import truncate_content


class HttpClient:
    """Browser-impersonating HTTP client, one per exchange"""

    DEFAULT_HEADERS = {
        'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/139.0.0.0 Safari/537.36',
        'Accept-Language': 'ko-KR,ko;q=0.8,en-US;q=0.5,en;q=0.3',
        "Connection": "keep-alive",
    }

    def __init__(self, exchange_name: Optional[str] = None, timeout: float = 20,
                 headers: Optional[Dict[str, str]] = None, proxy_rotator: Optional[ProxyRotator] = None,
                 attempts: int = 3):
        self.exchange_name = exchange_name
        self._timeout = timeout
        self._attempts = attempts
        self._proxy_rotator = proxy_rotator or ProxyRotator()

        session_headers = self.DEFAULT_HEADERS.copy()
        session_headers.update(headers or {})
        self.session: Optional[AsyncSession] = AsyncSession(
            headers=session_headers,
            timeout=self._timeout,
            impersonate="chrome"
        )

        self._log = logger.bind(component="http", exchange=exchange_name)

    async def request(self, method: str, url: str, **kwargs) -> str:
        """Return the response body; raises after the last failed attempt"""
        @retry(
            stop=stop_after_attempt(self._attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            reraise=True,
            before_sleep=lambda retry_state:
                self._log.info(f"{self.exchange_name} №{retry_state.attempt_number} | "
                               f"{truncate_content(str(retry_state.outcome.exception()))}")
        )
        async def request_inner() -> str:
            request_kwargs = dict(kwargs)
            if self._proxy_rotator:
                proxy = await self._proxy_rotator.next_proxy()
                request_kwargs['proxies'] = {'http': proxy, 'https': proxy}

            response = await self.session.request(method.upper(), url, **request_kwargs)

            if not response.ok:
                raise InvalidResponseException(
                    f"HTTP {response.status_code}: {truncate_content(response.text, 200)}",
                    response.status_code
                )

            return response.text

        return await request_inner()

    async def close(self):
        if self.session:
            await self.session.close()

    @staticmethod
    def get_base_url(url: str) -> str:
        parsed = urlparse(url)
        return f"{parsed.scheme}://{parsed.netloc}"
