"""listing_monitor/db/repository.py"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List

import aiosqlite
from loguru import logger

from listing_monitor.core.interfaces import ListingStore
from listing_monitor.core.models import (
    DuplicateListingError,
    ExchangeId,
    ListingEvent,
    StoreError,
    StoredListing,
)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS listings (
  id TEXT PRIMARY KEY,
  symbol TEXT NOT NULL,
  name TEXT NOT NULL,
  exchange TEXT NOT NULL,
  market_id TEXT NOT NULL,
  listed_at TEXT NOT NULL,
  announcement_id TEXT UNIQUE,
  announcement_title TEXT,
  announcement_url TEXT,
  is_announcement INTEGER NOT NULL DEFAULT 0,
  created_at TEXT NOT NULL,
  UNIQUE (exchange, market_id)
);
"""


class ListingRepository(ListingStore):
    """SQLite-backed listing store"""

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._log = logger.bind(component="db")

    async def init(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        async with aiosqlite.connect(self._db_path) as db:
            await db.executescript(SCHEMA_SQL)
            await db.commit()

    async def create(self, event: ListingEvent) -> StoredListing:
        listing_id = str(uuid.uuid4())
        created_at = datetime.now(timezone.utc)

        try:
            async with aiosqlite.connect(self._db_path) as db:
                await db.execute(
                    """
                    INSERT INTO listings (
                      id, symbol, name, exchange, market_id, listed_at,
                      announcement_id, announcement_title, announcement_url,
                      is_announcement, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        listing_id,
                        event.symbol,
                        event.display_name,
                        event.exchange_id.value,
                        event.market_id,
                        event.listed_at.isoformat(),
                        event.source_announcement_key,
                        event.source_title,
                        event.source_url,
                        int(event.is_from_announcement),
                        created_at.isoformat(),
                    ),
                )
                await db.commit()

        except aiosqlite.IntegrityError as e:
            self._log.debug(f"Duplicate listing {event.source_announcement_key}: {e}")
            raise DuplicateListingError(event.source_announcement_key, event.market_id) from e
        except (aiosqlite.Error, OSError) as e:
            raise StoreError(f"Failed to save listing {event.source_announcement_key}: {e}") from e

        self._log.info(f"Saved listing {event.exchange_id.value} {event.market_id}")
        return StoredListing(id=listing_id, event=event, created_at=created_at)

    async def list_all(self) -> List[StoredListing]:
        try:
            async with aiosqlite.connect(self._db_path) as db:
                db.row_factory = aiosqlite.Row
                async with db.execute("SELECT * FROM listings ORDER BY listed_at DESC") as cur:
                    rows = await cur.fetchall()
        except aiosqlite.OperationalError as e:
            if "no such table" in str(e):  # init() has not run yet
                self._log.warning(f"Listings table missing in {self._db_path}, treating history as empty")
                return []
            raise StoreError(f"Failed to load listings: {e}") from e
        except (aiosqlite.Error, OSError) as e:
            raise StoreError(f"Failed to load listings: {e}") from e

        return [self._row_to_listing(row) for row in rows]

    @staticmethod
    def _row_to_listing(row) -> StoredListing:
        event = ListingEvent(
            exchange_id=ExchangeId(row["exchange"]),
            symbol=row["symbol"],
            display_name=row["name"],
            listed_at=datetime.fromisoformat(row["listed_at"]),
            market_id=row["market_id"],
            source_announcement_key=row["announcement_id"] or "",
            source_title=row["announcement_title"] or "",
            source_url=row["announcement_url"] or "",
            is_from_announcement=bool(row["is_announcement"]),
        )
        return StoredListing(id=row["id"], event=event, created_at=datetime.fromisoformat(row["created_at"]))
