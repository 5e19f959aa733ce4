from .base import AnnouncementFetcher

from .upbit import UpbitFetcher
from .bithumb import BithumbFetcher
