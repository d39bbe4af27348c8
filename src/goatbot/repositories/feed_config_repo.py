"""
Repository for the ``feed_configs`` table.

Rows are created and edited by the web dashboard; the bot reads them and only
ever writes ``last_posted_id``. ``upsert`` exists for seeding and tests.
"""

from __future__ import annotations

import json
from typing import List

import aiosqlite

from goatbot.datatypes.feed_datatypes import DEFAULT_CHECK_INTERVAL_MINUTES, FeedConfig
from goatbot.util.logger import get_logger

logger = get_logger("feed_config_repo")

_COLUMNS = """
    id, platform, source, channel_id, message_template,
    check_interval_minutes, last_posted_id, is_enabled, meta
"""


class FeedConfigRepository:
    """CRUD for the feed_configs table."""

    def __init__(self, default_interval: int = DEFAULT_CHECK_INTERVAL_MINUTES) -> None:
        self.default_interval = default_interval

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_enabled(self, conn: aiosqlite.Connection) -> List[FeedConfig]:
        """Return every enabled feed, in insertion order."""
        async with conn.execute(
            f"SELECT {_COLUMNS} FROM feed_configs WHERE is_enabled = 1 ORDER BY rowid"
        ) as cursor:
            rows = await cursor.fetchall()

        return [FeedConfig.from_row(row, self.default_interval) for row in rows]

    async def get(self, conn: aiosqlite.Connection, feed_id: str) -> FeedConfig | None:
        """Fetch a single feed by id."""
        async with conn.execute(
            f"SELECT {_COLUMNS} FROM feed_configs WHERE id = ?",
            (str(feed_id),),
        ) as cursor:
            row = await cursor.fetchone()

        if row is None:
            return None
        return FeedConfig.from_row(row, self.default_interval)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert(self, conn: aiosqlite.Connection, feed: FeedConfig) -> None:
        """Insert or replace a feed definition."""
        await conn.execute(
            f"""
            INSERT INTO feed_configs ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                platform               = excluded.platform,
                source                 = excluded.source,
                channel_id             = excluded.channel_id,
                message_template       = excluded.message_template,
                check_interval_minutes = excluded.check_interval_minutes,
                last_posted_id         = excluded.last_posted_id,
                is_enabled             = excluded.is_enabled,
                meta                   = excluded.meta
            """,
            (
                str(feed.id),
                feed.platform,
                feed.source,
                feed.channel_id,
                feed.message_template,
                feed.check_interval_minutes,
                feed.last_posted_id,
                1 if feed.is_enabled else 0,
                json.dumps(feed.meta.to_dict()) if feed.meta is not None else None,
            ),
        )

    async def update_watermark(self, conn: aiosqlite.Connection, feed_id: str, last_posted_id: str) -> bool:
        """Set ``last_posted_id`` for one feed; returns False if the row is gone."""
        cursor = await conn.execute(
            "UPDATE feed_configs SET last_posted_id = ? WHERE id = ?",
            (last_posted_id, str(feed_id)),
        )
        return cursor.rowcount > 0
