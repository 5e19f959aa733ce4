from listing_monitor.core.models import ListingEvent
from listing_monitor.notifiers.base import NotificationChannel


class EmailChannel(NotificationChannel):
    """Email through the SendGrid v3 HTTP API"""

    name = "email"

    def __init__(self, api_key: str, from_address: str, to_address: str,
                 api_url: str = "https://api.sendgrid.com/v3/mail/send", **kwargs):
        super().__init__(**kwargs)
        self._api_key = api_key
        self._from = from_address
        self._to = to_address
        self._api_url = api_url

    async def send(self, event: ListingEvent) -> bool:
        if not (self._api_key and self._from and self._to):
            self._log.warning("Email channel missing api key or addresses")
            return False

        payload = {
            "personalizations": [{"to": [{"email": self._to}]}],
            "from": {"email": self._from},
            "subject": self.formatter.format_email_subject(event),
            "content": [{"type": "text/plain", "value": self.formatter.format_email_body(event)}],
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            async with self._get_session().post(self._api_url, json=payload, headers=headers) as resp:
                # SendGrid answers 202 Accepted
                if 200 <= resp.status < 300:
                    self._log.debug(f"Email queued to {self._to} for {event.market_id}")
                    return True

                body = await resp.text()
                self._log.warning(f"Email API error {resp.status}: {body[:200]}")
                return False
        except Exception as e:
            self._log.error(f"Email send error: {e}")
            return False
