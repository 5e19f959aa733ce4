from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional

KST = timezone(timedelta(hours=9), name="KST")


class ExchangeId(str, Enum):
    """Exchanges whose announcement feeds are monitored"""
    UPBIT = "upbit"
    BITHUMB = "bithumb"


def make_announcement_key(exchange_id: str, native_id: str) -> str:
    """Stable dedup token, e.g. ``upbit:42``"""
    exchange = exchange_id.value if isinstance(exchange_id, ExchangeId) else str(exchange_id)
    return f"{exchange.lower()}:{native_id}"


@dataclass(frozen=True)
class Announcement:
    exchange_id: ExchangeId
    native_id: str
    title: str
    published_at: Optional[datetime]
    source_url: str

    @property
    def key(self) -> str:
        return make_announcement_key(self.exchange_id, self.native_id)


@dataclass
class FetchResult:
    """Announcements of one poll; ``available`` is False when the source failed"""
    announcements: List[Announcement] = field(default_factory=list)
    available: bool = True
    total: int = 0

    @classmethod
    def unavailable(cls) -> 'FetchResult':
        return cls(announcements=[], available=False, total=0)
