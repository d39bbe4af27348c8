"""
Dispatch pipeline: one feed, one tick.

    fetch → newest item vs. watermark → filters → resolve channel
          → render → send → save watermark

Only the newest item (index 0) is ever considered. When several items
appear between two checks, the older ones are skipped rather than
back-posted. The watermark moves only after a successful send, which makes
delivery at-least-once: if the send succeeds but the write fails, the same
item is posted again on the next due tick.

Every failure is caught here, logged with the feed's id, platform and
source, and turned into a :class:`FeedOutcome`; nothing propagates to the
scheduler except cancellation.
"""

from __future__ import annotations

import asyncio
from enum import Enum

from goatbot.datatypes.feed_datatypes import FeedConfig
from goatbot.feeds import filters
from goatbot.feeds.delivery import DiscordChannelDelivery
from goatbot.feeds.errors import DestinationUnresolvedError, PersistenceError, SourceFetchError
from goatbot.feeds.feed_store import FeedConfigStore
from goatbot.feeds.sources import SourceRegistry
from goatbot.feeds.templates import render_message
from goatbot.util.logger import get_logger

logger = get_logger("feed_pipeline")


class FeedOutcome(Enum):
    """Result of processing one feed on one tick."""

    POSTED = "posted"
    NO_NEW_ITEMS = "no_new_items"
    EMPTY = "empty"
    FILTERED = "filtered"
    SKIPPED = "skipped"
    UNRESOLVED_DESTINATION = "unresolved_destination"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


class FeedPipeline:
    """Runs a single feed through fetch, dedup, filter, render and delivery.

    Args:
        sources: Platform adapter registry.
        delivery: Channel resolution and sending.
        store: Watermark persistence.
    """

    def __init__(
        self,
        sources: SourceRegistry,
        delivery: DiscordChannelDelivery,
        store: FeedConfigStore,
    ) -> None:
        self.sources = sources
        self.delivery = delivery
        self.store = store

    async def process(self, feed: FeedConfig) -> FeedOutcome:
        """Process ``feed`` once; never raises except on cancellation."""
        try:
            return await self._run(feed)
        except asyncio.CancelledError:
            raise
        except SourceFetchError as exc:
            logger.warning("[FEED_PIPELINE] Fetch failed for feed %s: %s", feed.describe(), exc)
        except DestinationUnresolvedError as exc:
            logger.warning("[FEED_PIPELINE] %s", exc)
            return FeedOutcome.UNRESOLVED_DESTINATION
        except Exception as exc:
            logger.exception("[FEED_PIPELINE] Error processing feed %s: %s", feed.describe(), exc)
        return FeedOutcome.FAILED

    async def _run(self, feed: FeedConfig) -> FeedOutcome:
        if not feed.is_enabled or not feed.channel_id:
            logger.debug("[FEED_PIPELINE] Skipping feed %s (disabled or no destination)", feed.describe())
            return FeedOutcome.SKIPPED

        items = await self.sources.fetch_latest(feed.platform, feed.source)
        if not items:
            return FeedOutcome.EMPTY

        latest = items[0]
        if latest.id == feed.last_posted_id:
            return FeedOutcome.NO_NEW_ITEMS

        if filters.applies_to(feed):
            failed = filters.check_filters(latest, feed.meta)
            if failed is not None:
                logger.debug(
                    "[FEED_PIPELINE] Item %s of feed %s rejected by %s filter",
                    latest.id, feed.describe(), failed,
                )
                return FeedOutcome.FILTERED

        channel = await self.delivery.resolve_channel(feed.channel_id)
        if channel is None:
            raise DestinationUnresolvedError(
                f"Channel {feed.channel_id} not found for feed {feed.describe()}",
                feed_id=feed.id,
            )

        message = render_message(feed.message_template, latest, feed.platform)
        await self.delivery.send(channel, message)
        logger.info(
            "[FEED_PIPELINE] Posted new %s item %s to channel %s: %s",
            feed.platform, latest.id, feed.channel_id, latest.title,
        )

        try:
            await self.store.update_watermark(feed.id, latest.id)
        except PersistenceError as exc:
            logger.error(
                "[FEED_PIPELINE] Posted item %s but could not save watermark for feed %s; "
                "it may be posted again: %s",
                latest.id, feed.describe(), exc,
            )
            return FeedOutcome.POSTED

        feed.last_posted_id = latest.id
        return FeedOutcome.POSTED
