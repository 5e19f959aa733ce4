from typing import Iterable, Optional, Tuple

DEFAULT_LISTING_KEYWORDS: Tuple[str, ...] = (
    # Upbit
    "마켓 디지털 자산 추가",
    "디지털 자산 추가",
    "KRW 마켓 디지털 자산 추가",
    "BTC 마켓 디지털 자산 추가",
    "USDT 마켓 디지털 자산 추가",
    "원화마켓 추가",
    "거래지원 개시",
    "거래 지원 개시",
    "신규 디지털 자산 거래",
    # Bithumb
    "원화 마켓 추가",
    "BTC 마켓 추가",
    "마켓 추가",
    "거래 개시",
    "신규 상장",
    "상장 예정",
    # English
    "New Listing",
    "Digital Asset Addition",
    "Digital Asset Trading",
    "Market Addition",
)

# Delisting, caution and suspension notices reuse the listing vocabulary
# ("거래지원 종료", "거래 개시 중단"), so these win over any listing keyword.
DEFAULT_EXCLUDE_KEYWORDS: Tuple[str, ...] = (
    "종료",
    "유의",
    "중단",
    "상장폐지",
    "delist",
    "termination",
    "suspension",
)


def _normalize(keywords: Iterable[str]) -> Tuple[str, ...]:
    return tuple(k.lower() for k in keywords if k and k.strip())


class TitleClassifier:
    """Decides whether an announcement title denotes a new listing"""

    def __init__(self, keywords: Optional[Iterable[str]] = None,
                 exclude_keywords: Optional[Iterable[str]] = None):
        self.keywords = _normalize(list(keywords) if keywords else DEFAULT_LISTING_KEYWORDS)
        self.exclude_keywords = _normalize(
            DEFAULT_EXCLUDE_KEYWORDS if exclude_keywords is None else exclude_keywords
        )

    def is_listing_announcement(self, title: str) -> bool:
        if not title:
            return False

        lower_title = title.lower()
        if any(keyword in lower_title for keyword in self.exclude_keywords):
            return False
        return any(keyword in lower_title for keyword in self.keywords)
