"""
Poll loop for the feed engine.

One background task wakes every ``tick_seconds``. On each tick it loads the
enabled feeds, picks the ones whose own interval has elapsed since their last
check attempt, and runs each of those in its own task so a slow source never
holds up the others. The first tick runs immediately on start, and since no
check times are known yet every feed is due on it.

Check times live only in memory: after a restart every feed is due again.
A check time is recorded when a feed is dispatched, whatever the outcome, so
a failing feed waits its normal interval before the next attempt.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Dict, List

from goatbot.datatypes.feed_datatypes import FeedConfig
from goatbot.feeds.errors import PersistenceError
from goatbot.feeds.feed_pipeline import FeedOutcome, FeedPipeline
from goatbot.feeds.feed_store import FeedConfigStore
from goatbot.util.logger import get_logger

logger = get_logger("feed_scheduler")


class FeedScheduler:
    """
    Long-lived scheduler dispatching due feeds to the pipeline.

    Args:
        store: Source of enabled feed configs.
        pipeline: Processes one feed per dispatch.
        tick_seconds: Period between due-ness evaluations.
        clock: Monotonic seconds source; check times are never persisted.
        backoff_enabled: Stretch the interval of feeds that keep failing.
        backoff_max_exponent: Cap for the backoff multiplier (``2**n``).

    Attributes:
        last_checked (Dict[str, float]): Feed id → time of last dispatch.
        failures (Dict[str, int]): Feed id → consecutive FAILED outcomes.
    """

    def __init__(
        self,
        store: FeedConfigStore,
        pipeline: FeedPipeline,
        *,
        tick_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        backoff_enabled: bool = False,
        backoff_max_exponent: int = 5,
    ) -> None:
        self.store = store
        self.pipeline = pipeline
        self.tick_seconds = tick_seconds
        self._clock = clock
        self.backoff_enabled = backoff_enabled
        self.backoff_max_exponent = backoff_max_exponent

        self.last_checked: Dict[str, float] = {}
        self.failures: Dict[str, int] = {}
        self._in_flight: Dict[str, asyncio.Task[FeedOutcome]] = {}
        self._task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Due-ness
    # ------------------------------------------------------------------

    def effective_interval(self, feed: FeedConfig) -> float:
        """Seconds that must pass between two checks of ``feed``."""
        interval = feed.interval_seconds
        failures = self.failures.get(feed.id, 0)
        if self.backoff_enabled and failures:
            interval *= 2 ** min(failures, self.backoff_max_exponent)
        return interval

    def is_due(self, feed: FeedConfig, now: float) -> bool:
        last = self.last_checked.get(feed.id)
        if last is None:
            return True
        return now - last >= self.effective_interval(feed)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def tick(self, now: float | None = None) -> List[asyncio.Task[FeedOutcome]]:
        """Dispatch every due feed and return the tasks that were started.

        The tick itself does not wait for the feeds to finish.
        """
        now = self._clock() if now is None else now

        try:
            feeds = await self.store.list_enabled_feeds()
        except PersistenceError as exc:
            logger.error("[FEED_SCHEDULER] Could not load feeds: %s", exc)
            return []

        dispatched: List[asyncio.Task[FeedOutcome]] = []
        for feed in feeds:
            if not feed.is_enabled or not self.is_due(feed, now):
                continue

            running = self._in_flight.get(feed.id)
            if running is not None and not running.done():
                logger.debug("[FEED_SCHEDULER] Feed %s still running from an earlier tick", feed.describe())
                continue

            self.last_checked[feed.id] = now
            task = asyncio.create_task(self._dispatch(feed), name=f"goatbot-feed-{feed.id}")
            self._in_flight[feed.id] = task
            dispatched.append(task)

        if dispatched:
            logger.debug("[FEED_SCHEDULER] Dispatched %d of %d enabled feeds", len(dispatched), len(feeds))
        return dispatched

    async def _dispatch(self, feed: FeedConfig) -> FeedOutcome:
        try:
            outcome = await self.pipeline.process(feed)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("[FEED_SCHEDULER] Unhandled error for feed %s: %s", feed.describe(), exc)
            outcome = FeedOutcome.FAILED
        finally:
            if self._in_flight.get(feed.id) is asyncio.current_task():
                del self._in_flight[feed.id]

        self._record(feed, outcome)
        return outcome

    def _record(self, feed: FeedConfig, outcome: FeedOutcome) -> None:
        if outcome is FeedOutcome.FAILED:
            self.failures[feed.id] = self.failures.get(feed.id, 0) + 1
            if self.backoff_enabled:
                logger.info(
                    "[FEED_SCHEDULER] Feed %s failed %d time(s) in a row; next check in %.0fs",
                    feed.describe(), self.failures[feed.id], self.effective_interval(feed),
                )
        else:
            self.failures.pop(feed.id, None)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run_loop(self) -> None:
        """Tick immediately, then every ``tick_seconds`` for the life of the process."""
        logger.info("[FEED_SCHEDULER] Starting feed polling (tick=%.0fs)", self.tick_seconds)
        try:
            while True:
                try:
                    await self.tick()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.error("[FEED_SCHEDULER] Unexpected error during tick: %s", exc)
                await asyncio.sleep(self.tick_seconds)
        except asyncio.CancelledError:
            logger.info("[FEED_SCHEDULER] Feed polling cancelled")
            raise

    def start(self) -> None:
        """Start the background loop if it is not already running."""
        if self.running:
            logger.warning("[FEED_SCHEDULER] Already running")
            return
        self._task = asyncio.create_task(self._run_loop(), name="goatbot-feed-scheduler")

    def cancel(self) -> List[asyncio.Task]:
        """Request cancellation of the loop and every feed in flight.

        Safe to call from synchronous code such as ``Cog.cog_unload``. Returns
        the tasks that were still running so an async caller can wait on them.
        """
        pending: List[asyncio.Task] = [task for task in self._in_flight.values() if not task.done()]
        if self._task is not None and not self._task.done():
            pending.append(self._task)

        for task in pending:
            task.cancel()

        self._in_flight.clear()
        self._task = None
        return pending

    async def shutdown(self) -> None:
        """Cancel the loop and any feed still in flight, then wait for them to exit."""
        pending = self.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("[FEED_SCHEDULER] Scheduler shutdown complete")
