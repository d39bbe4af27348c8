"""
Persistence collaborator for the feed engine.

``FeedConfigStore`` is what the scheduler and pipeline are given: it owns the
connection handling and turns database failures into
:class:`PersistenceError`, so the engine never sees aiosqlite types.
"""

from __future__ import annotations

from typing import List

from goatbot.database.db_connection import ConnectionManager
from goatbot.datatypes.feed_datatypes import FeedConfig
from goatbot.feeds.errors import PersistenceError
from goatbot.repositories.feed_config_repo import FeedConfigRepository
from goatbot.util.logger import get_logger

logger = get_logger("feed_store")


class FeedConfigStore:
    """Reads enabled feeds and advances watermarks.

    Args:
        connection: Open connection manager shared with the rest of the bot.
        repo: Repository for the ``feed_configs`` table.
    """

    def __init__(self, connection: ConnectionManager, repo: FeedConfigRepository | None = None) -> None:
        self.connection = connection
        self.repo = repo or FeedConfigRepository()

    async def list_enabled_feeds(self) -> List[FeedConfig]:
        try:
            async with self.connection.read() as conn:
                return await self.repo.list_enabled(conn)
        except Exception as exc:
            raise PersistenceError(f"Failed to load enabled feeds: {exc}") from exc

    async def update_watermark(self, feed_id: str, new_id: str) -> bool:
        """Persist ``new_id`` as the feed's last posted item.

        Returns False when the feed row no longer exists (deleted from the
        dashboard while its post was in flight).

        Raises:
            PersistenceError: The write failed.
        """
        try:
            async with self.connection.transaction() as conn:
                updated = await self.repo.update_watermark(conn, feed_id, new_id)
        except Exception as exc:
            raise PersistenceError(f"Failed to update watermark: {exc}", feed_id=feed_id) from exc

        if not updated:
            logger.warning("[FEED_STORE] Feed %s disappeared before its watermark could be saved", feed_id)
        return updated
