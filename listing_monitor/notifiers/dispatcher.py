import asyncio
from typing import List, Sequence

from loguru import logger

from listing_monitor.core.interfaces import Notifier
from listing_monitor.core.models import ListingEvent, NotificationError
from listing_monitor.db.config.loader import NotificationsConfig
from listing_monitor.notifiers.base import NotificationChannel
from listing_monitor.notifiers.email_sender import EmailChannel
from listing_monitor.notifiers.formatter import MessageFormatter
from listing_monitor.notifiers.telegram import TelegramChannel
from listing_monitor.notifiers.webhook import WebhookChannel


class NotificationDispatcher(Notifier):
    """Fans a listing event out to every enabled channel"""

    def __init__(self, channels: Sequence[NotificationChannel]):
        self.channels: List[NotificationChannel] = list(channels)
        self._log = logger.bind(component="notifier")

    @classmethod
    def from_config(cls, config: NotificationsConfig) -> 'NotificationDispatcher':
        formatter = MessageFormatter()
        channels: List[NotificationChannel] = []

        if config.telegram.enabled:
            channels.append(TelegramChannel(
                config.telegram.bot_token, config.telegram.chat_id,
                timeout=config.timeout, formatter=formatter
            ))
        if config.webhook.enabled:
            channels.append(WebhookChannel(config.webhook.url, timeout=config.timeout, formatter=formatter))
        if config.email.enabled:
            channels.append(EmailChannel(
                config.email.api_key, config.email.from_address, config.email.to_address,
                api_url=config.email.api_url, timeout=config.timeout, formatter=formatter
            ))

        return cls(channels)

    async def notify_immediate(self, event: ListingEvent) -> None:
        if not self.channels:
            self._log.info(f"No notification channels enabled, skipping {event.market_id}")
            return

        results = await asyncio.gather(
            *(channel.send(event) for channel in self.channels),
            return_exceptions=True
        )

        failed = []
        for channel, result in zip(self.channels, results):
            if isinstance(result, Exception):
                self._log.error(f"{channel.name} raised: {result}")
                failed.append(channel.name)
            elif not result:
                failed.append(channel.name)

        if failed:
            raise NotificationError(
                f"Notification failed for {event.market_id} on: {', '.join(failed)}",
                failed_channels=failed
            )

        self._log.info(f"Notified {len(self.channels)} channel(s) for {event.exchange_id.value} {event.market_id}")

    async def close(self) -> None:
        for channel in self.channels:
            await channel.close()
