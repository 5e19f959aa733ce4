import re
from datetime import datetime
from typing import Dict, List, Optional

from bs4 import BeautifulSoup

from listing_monitor.modules.parsers.exchanges.base import AnnouncementFetcher


class UpbitFetcher(AnnouncementFetcher):
    """Upbit notice board, scraped from the HTML table"""

    NOTICE_ID_PATTERN = re.compile(r'(\d+)(?!.*\d)')

    def extract_items(self, raw_data: str) -> List[Dict]:
        soup = BeautifulSoup(raw_data, 'html.parser')

        items = []
        for row in soup.find_all('tr'):
            title_cell = row.find('td', class_='title')
            link = title_cell.find('a', href=True) if title_cell else None
            if not link:
                continue

            date_cell = row.find('td', class_='date')
            items.append({
                'href': link['href'].strip(),
                'title': ' '.join(link.get_text(' ', strip=True).split()),
                'date': date_cell.get_text(strip=True) if date_cell else '',
            })

        if not items:
            self._log.debug("No notice rows found in Upbit page")
        return items

    def extract_source_id(self, item: Dict) -> str:
        match = self.NOTICE_ID_PATTERN.search(item.get('href', ''))
        return match.group(1) if match else ''

    def extract_title(self, item: Dict) -> str:
        return item.get('title', '')

    def extract_timestamp(self, item: Dict) -> Optional[datetime]:
        return self.parse_datetime(item.get('date'))

    def build_url(self, item: Dict) -> str:
        href = item.get('href', '')
        if href.startswith('http'):
            return href
        return f"{self._base_url}{href if href.startswith('/') else '/' + href}"
