from typing import Dict, Type

from listing_monitor.core.http_client import HttpClient
from listing_monitor.db.config.loader import ExchangeConfig
from . import AnnouncementFetcher, BithumbFetcher, UpbitFetcher


class FetcherFactory:
    """Factory for creating exchange announcement fetchers"""

    _registry: Dict[str, Type[AnnouncementFetcher]] = {
        'upbit': UpbitFetcher,
        'bithumb': BithumbFetcher,
    }

    @classmethod
    def create(cls, config: ExchangeConfig, http_client: HttpClient) -> AnnouncementFetcher:
        fetcher_class = cls._registry.get(config.name.lower())
        if not fetcher_class:
            raise ValueError(f"Unknown exchange: {config.name}")

        return fetcher_class(config, http_client)
