from listing_monitor.core.models import ListingEvent
from listing_monitor.notifiers.base import NotificationChannel


class TelegramChannel(NotificationChannel):
    """Telegram Bot API sender"""

    name = "telegram"

    def __init__(self, bot_token: str, chat_id: str, **kwargs):
        super().__init__(**kwargs)
        self._token = bot_token
        self._chat_id = chat_id

    async def send(self, event: ListingEvent) -> bool:
        if not self._token or not self._chat_id:
            self._log.warning("Missing bot token or chat_id", exchange=event.exchange_id.value)
            return False

        payload = {
            "chat_id": self._chat_id,
            "text": self.formatter.format_telegram(event),
            "disable_web_page_preview": True,
            "parse_mode": "HTML",
        }
        url = f"https://api.telegram.org/bot{self._token}/sendMessage"

        data = ""
        try:
            async with self._get_session().post(url, json=payload) as resp:
                data = await resp.json(content_type=None)
                success = resp.status == 200 and bool(data and data.get("ok"))
                if success:
                    self._log.debug(f"Message sent for {event.market_id}")
                else:
                    self._log.warning(f"Failed to send message | {resp.status} | {data}")
                return success
        except Exception as e:
            self._log.error(f"Send error: {e} | {data}")
            return False
