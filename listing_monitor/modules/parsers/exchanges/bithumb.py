from datetime import datetime
from typing import Any, Dict, List, Optional

from listing_monitor.modules.parsers.exchanges.base import AnnouncementFetcher
from listing_monitor.utils.tools import get_json_if_valid, truncate_content


class BithumbFetcher(AnnouncementFetcher):
    """Bithumb notice feed, served as JSON"""

    NOTICE_URL = "https://feed.bithumb.com/notice"

    def extract_items(self, raw_data: str) -> Optional[List[Dict]]:
        data = get_json_if_valid(raw_data)
        items = self._find_items(data)

        if items is None:
            self._log.warning(f"Failed to parse Bithumb response: {truncate_content(str(raw_data), 200)}")
            return None

        return [item for item in items if isinstance(item, dict)]

    @staticmethod
    def _find_items(data: Any) -> Optional[List]:
        if isinstance(data, list):
            return data
        if not isinstance(data, dict):
            return None

        payload = data.get('data')
        if isinstance(payload, list):
            return payload
        if isinstance(payload, dict) and isinstance(payload.get('list'), list):
            return payload['list']

        page_props = data.get('pageProps')
        if isinstance(page_props, dict) and isinstance(page_props.get('noticeList'), list):
            return page_props['noticeList']

        return None

    def extract_source_id(self, item: Dict) -> str:
        native_id = item.get('seq') or item.get('id')
        return str(native_id) if native_id not in (None, '') else ''

    def extract_title(self, item: Dict) -> str:
        return self.strip_html(str(item.get('title') or ''))

    def extract_timestamp(self, item: Dict) -> Optional[datetime]:
        return self.parse_datetime(item.get('regDttm') or item.get('publicationDateTime'))

    def build_url(self, item: Dict) -> str:
        url = item.get('url') or item.get('link')
        if url:
            return url if str(url).startswith('http') else f"{self._base_url}{url}"

        notice_id = self.extract_source_id(item)
        return f"{self.NOTICE_URL}/{notice_id}" if notice_id else self.NOTICE_URL
