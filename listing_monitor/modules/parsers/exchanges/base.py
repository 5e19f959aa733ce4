import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from loguru import logger

from listing_monitor.core.http_client import HttpClient
from listing_monitor.core.models import KST, Announcement, ExchangeId, FetchResult
from listing_monitor.db.config.loader import ExchangeConfig


class AnnouncementFetcher(ABC):
    """Fetches one exchange's announcement feed and parses it into Announcements.

    Subclasses only describe the feed shape; transport errors and malformed
    bodies are turned into an unavailable FetchResult here.
    """

    DATETIME_FORMATS = (
        '%Y-%m-%d %H:%M:%S',
        '%Y-%m-%d %H:%M',
        '%Y-%m-%d',
        '%Y.%m.%d %H:%M:%S',
        '%Y.%m.%d %H:%M',
        '%Y.%m.%d',
    )

    def __init__(self, config: ExchangeConfig, http_client: HttpClient):
        self.exchange_id = ExchangeId(config.name.lower())
        self.name = self.exchange_id.value
        self.api_url = config.api_url
        self.method = config.request.method
        self.kwargs = config.request.kwargs
        self.max_items = config.monitoring.max_items

        self.http = http_client
        self._log = logger.bind(component="fetcher", exchange=self.name)
        self._base_url = self.http.get_base_url(self.api_url)

    async def fetch_raw_data(self) -> str:
        return await self.http.request(self.method, self.api_url, **self.kwargs.copy())

    async def fetch(self) -> FetchResult:
        """Latest announcements in feed order, capped at ``max_items``"""
        try:
            raw_data = await self.fetch_raw_data()
        except Exception as e:
            self._log.warning(f"Fetch failed: {type(e).__name__}: {e}")
            return FetchResult.unavailable()

        if not raw_data or not raw_data.strip():
            self._log.warning("Empty response body")
            return FetchResult.unavailable()

        try:
            items = self.extract_items(raw_data)
        except Exception as e:
            self._log.warning(f"Malformed response: {type(e).__name__}: {e}")
            return FetchResult.unavailable()

        if items is None:
            return FetchResult.unavailable()

        announcements = []
        for item in items:
            if len(announcements) >= self.max_items:
                break
            try:
                if ann := self.parse_announcement(item):
                    announcements.append(ann)
            except Exception as e:
                self._log.warning(f"Parse error: {type(e).__name__}: {e}")

        return FetchResult(announcements=announcements, available=True, total=len(items))

    def parse_announcement(self, item: Dict[str, Any]) -> Optional[Announcement]:
        source_id = self.extract_source_id(item)
        title = self.extract_title(item)
        if not source_id or not title:
            return None

        return Announcement(
            exchange_id=self.exchange_id,
            native_id=source_id,
            title=title,
            published_at=self.extract_timestamp(item),
            source_url=self.build_url(item),
        )

    @abstractmethod
    def extract_items(self, raw_data: str) -> Optional[List[Dict]]:
        """Raw announcement items in feed order, None when the body is unusable"""

    @abstractmethod
    def extract_source_id(self, item: Dict) -> str:
        pass

    @abstractmethod
    def extract_title(self, item: Dict) -> str:
        pass

    @abstractmethod
    def extract_timestamp(self, item: Dict) -> Optional[datetime]:
        pass

    @abstractmethod
    def build_url(self, item: Dict) -> str:
        pass

    def parse_datetime(self, value: Any) -> Optional[datetime]:
        """Parse an exchange timestamp; naive values are Korean local time"""
        if not value:
            return None

        if isinstance(value, (int, float)):
            seconds = value / 1000 if value > 10 ** 11 else value
            return datetime.fromtimestamp(seconds, tz=timezone.utc)

        text = str(value).strip()
        try:
            dt = datetime.fromisoformat(text.replace('Z', '+00:00'))
        except ValueError:
            dt = None
            for fmt in self.DATETIME_FORMATS:
                try:
                    dt = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue

        if dt is None:
            self._log.debug(f"Unparseable timestamp: {text}")
            return None

        return dt if dt.tzinfo else dt.replace(tzinfo=KST)

    @staticmethod
    def strip_html(text: str) -> str:
        """Remove HTML tags"""
        if not text:
            return ""
        text = re.sub(r'<[^>]+>', ' ', text)
        text = re.sub(r'&nbsp;', ' ', text)
        text = re.sub(r'&amp;', '&', text)
        text = re.sub(r'&[a-z]+;', ' ', text)
        text = re.sub(r'\s+', ' ', text)
        return text.strip()
