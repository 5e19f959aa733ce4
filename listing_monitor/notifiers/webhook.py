from listing_monitor.core.models import ListingEvent
from listing_monitor.notifiers.base import NotificationChannel


class WebhookChannel(NotificationChannel):
    """Posts a Discord-compatible embed to a webhook URL"""

    name = "webhook"

    def __init__(self, url: str, **kwargs):
        super().__init__(**kwargs)
        self._url = url

    async def send(self, event: ListingEvent) -> bool:
        if not self._url:
            self._log.warning("Webhook URL not configured")
            return False

        payload = {"embeds": [self.formatter.format_embed(event)]}
        try:
            async with self._get_session().post(self._url, json=payload) as resp:
                if 200 <= resp.status < 300:
                    self._log.debug(f"Webhook delivered for {event.market_id}")
                    return True

                body = await resp.text()
                self._log.warning(f"Webhook error {resp.status}: {body[:200]}")
                return False
        except Exception as e:
            self._log.error(f"Webhook send error: {e}")
            return False
