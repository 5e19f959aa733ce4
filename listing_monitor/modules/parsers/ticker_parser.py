import re
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Sequence

from listing_monitor.core.models import DEFAULT_QUOTE_CURRENCY, ExtractedCoin

DEFAULT_RESERVED_SYMBOLS: FrozenSet[str] = frozenset({'KRW', 'BTC', 'USDT', 'ETH', 'USD'})

# Local-language market words and the quote currency they stand for
LOCAL_MARKET_WORDS = {
    '원화': 'KRW',
}

_NAME = r'([^()]+)'
_SYMBOL_IN_PARENS = r'\(\s*([A-Za-z0-9]{2,10})\s*\)'
_QUOTES = r'(KRW|BTC|USDT|ETH)'
_LOCAL_MARKET = '(' + '|'.join(LOCAL_MARKET_WORDS) + ')'

_VALID_SYMBOL = re.compile(r'^[A-Z0-9]{2,10}$')
_LEADING_TAGS = re.compile(r'^\s*(?:\[[^\]]*\]\s*)+')
_LEADING_SEPARATORS = re.compile(r'^[\s,/·&|+]+')


class PatternKind(str, Enum):
    NAMED_WITH_QUOTE = "named_with_quote"
    NAMED_WITH_LOCAL_MARKET = "named_with_local_market"
    NAMED = "named"
    BARE_SYMBOL = "bare_symbol"


@dataclass(frozen=True)
class TitlePattern:
    """One extraction rule; group numbers refer to ``regex``"""
    kind: PatternKind
    regex: re.Pattern
    symbol_group: int
    name_group: Optional[int] = None
    quote_group: Optional[int] = None
    default_quote: str = DEFAULT_QUOTE_CURRENCY

    def quote_from(self, match: re.Match) -> str:
        if self.quote_group is None:
            return self.default_quote

        raw = (match.group(self.quote_group) or '').strip()
        return LOCAL_MARKET_WORDS.get(raw, raw.upper() or self.default_quote)


DEFAULT_PATTERNS: List[TitlePattern] = [
    # "사이버(CYBER) KRW, USDT 마켓 디지털 자산 추가"
    TitlePattern(PatternKind.NAMED_WITH_QUOTE,
                 re.compile(_NAME + _SYMBOL_IN_PARENS + r'\s*' + _QUOTES),
                 symbol_group=2, name_group=1, quote_group=3),
    # "스테이더(SD) 원화 마켓 추가"
    TitlePattern(PatternKind.NAMED_WITH_LOCAL_MARKET,
                 re.compile(_NAME + _SYMBOL_IN_PARENS + r'\s*' + _LOCAL_MARKET),
                 symbol_group=2, name_group=1, quote_group=3),
    # "비트코인(BTC)"
    TitlePattern(PatternKind.NAMED,
                 re.compile(_NAME + _SYMBOL_IN_PARENS),
                 symbol_group=2, name_group=1),
    # "CYBER KRW 마켓"
    TitlePattern(PatternKind.BARE_SYMBOL,
                 re.compile(r'^([A-Z0-9]{2,10})\s*(KRW|BTC|USDT|ETH|' + '|'.join(LOCAL_MARKET_WORDS) + ')'),
                 symbol_group=1, quote_group=2),
]


class SymbolExtractor:
    """Extracts the listed coin from a listing announcement title.

    Patterns are tried in order and each pattern is matched once. The first
    pattern whose captured symbol passes the validity filter wins; a rejected
    candidate only disqualifies that pattern, the next one is still tried.
    """

    def __init__(self, patterns: Optional[Sequence[TitlePattern]] = None,
                 reserved_symbols: Optional[Iterable[str]] = None):
        self.patterns = list(patterns) if patterns else list(DEFAULT_PATTERNS)
        self.reserved_symbols = (
            frozenset(s.upper() for s in reserved_symbols) if reserved_symbols else DEFAULT_RESERVED_SYMBOLS
        )

    def extract(self, title: str) -> Optional[ExtractedCoin]:
        if not title:
            return None

        for pattern in self.patterns:
            match = pattern.regex.search(title)
            if not match:
                continue

            symbol = (match.group(pattern.symbol_group) or '').strip().upper()
            if not self.is_valid_symbol(symbol):
                continue

            return ExtractedCoin(
                symbol=symbol,
                display_name=self._clean_name(match.group(pattern.name_group)) if pattern.name_group else None,
                quote_currency=pattern.quote_from(match),
            )

        return None

    def is_valid_symbol(self, symbol: str) -> bool:
        return bool(_VALID_SYMBOL.match(symbol)) and symbol not in self.reserved_symbols

    @staticmethod
    def _clean_name(name: Optional[str]) -> Optional[str]:
        if not name:
            return None
        cleaned = _LEADING_TAGS.sub('', _LEADING_SEPARATORS.sub('', name)).strip()
        return cleaned or None
