from html import escape
from typing import Any, Dict

from listing_monitor.core.models import KST, ExchangeId, ListingEvent

EXCHANGE_NAMES = {
    ExchangeId.UPBIT: "업비트",
    ExchangeId.BITHUMB: "빗썸",
}
EXCHANGE_EMOJI = {
    ExchangeId.UPBIT: "🔵",
    ExchangeId.BITHUMB: "🟡",
}
EXCHANGE_COLORS = {
    ExchangeId.UPBIT: 0x1976D2,
    ExchangeId.BITHUMB: 0xF57C00,
}


class MessageFormatter:
    """Format listing events for different notification channels"""

    @staticmethod
    def exchange_name(event: ListingEvent) -> str:
        return EXCHANGE_NAMES.get(event.exchange_id, event.exchange_id.value.capitalize())

    @staticmethod
    def listed_at_text(event: ListingEvent) -> str:
        return event.listed_at.astimezone(KST).strftime("%Y-%m-%d %H:%M KST")

    @classmethod
    def format_telegram(cls, event: ListingEvent) -> str:
        """HTML message for the Telegram Bot API"""
        emoji = EXCHANGE_EMOJI.get(event.exchange_id, "")
        lines = [
            f"🚀 <b>새로운 상장 알림</b> {emoji}",
            "",
            f"💰 <b>{escape(event.display_name)}</b> ({escape(event.symbol)})",
            f"🏢 거래소: {cls.exchange_name(event)}",
            f"⏰ 상장일시: {cls.listed_at_text(event)}",
            f"🆔 마켓 ID: <code>{escape(event.market_id)}</code>",
        ]
        if event.source_url:
            lines.append(f"<a href='{escape(event.source_url, quote=True)}'>{escape(event.source_title)}</a>")

        return "\n".join(lines)

    @classmethod
    def format_embed(cls, event: ListingEvent) -> Dict[str, Any]:
        """Discord-compatible webhook embed"""
        exchange = cls.exchange_name(event)
        return {
            "title": f"🚀 새로운 상장: {event.display_name}",
            "description": f"{event.symbol}이(가) {exchange}에 상장되었습니다!",
            "url": event.source_url or None,
            "color": EXCHANGE_COLORS.get(event.exchange_id, 0x607D8B),
            "fields": [
                {"name": "거래소", "value": exchange, "inline": True},
                {"name": "심볼", "value": event.symbol, "inline": True},
                {"name": "마켓 ID", "value": event.market_id, "inline": True},
                {"name": "상장일시", "value": cls.listed_at_text(event), "inline": False},
            ],
            "timestamp": event.listed_at.isoformat(),
            "footer": {"text": "Crypto Listing Monitor"},
        }

    @classmethod
    def format_email_subject(cls, event: ListingEvent) -> str:
        return f"새로운 암호화폐 상장: {event.display_name} ({event.symbol})"

    @classmethod
    def format_email_body(cls, event: ListingEvent) -> str:
        exchange = cls.exchange_name(event)
        return (
            f"새로운 암호화폐가 {exchange}에 상장되었습니다!\n\n"
            f"코인명: {event.display_name}\n"
            f"심볼: {event.symbol}\n"
            f"거래소: {exchange}\n"
            f"상장일시: {cls.listed_at_text(event)}\n"
            f"마켓 ID: {event.market_id}\n"
            f"공지: {event.source_title}\n"
            f"{event.source_url}\n\n"
            "이 알림은 Crypto Listing Monitor에서 자동으로 발송되었습니다."
        )
