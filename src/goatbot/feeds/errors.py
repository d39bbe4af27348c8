"""
Error types raised inside the feed engine.

All of them are recoverable: they are caught at the per-feed boundary of the
dispatch pipeline (or the tick boundary of the scheduler), logged, and the
feed is simply tried again on its next due tick.
"""

from __future__ import annotations


class FeedError(Exception):
    """Base class for feed engine failures.

    Args:
        message: Human-readable description.
        feed_id: Feed the failure belongs to, when known.
    """

    def __init__(self, message: str, *, feed_id: str | None = None) -> None:
        super().__init__(message)
        self.feed_id = feed_id


class SourceFetchError(FeedError):
    """A source could not be reached, answered non-2xx, or returned unparseable data."""

    def __init__(self, message: str, *, feed_id: str | None = None, status: int | None = None) -> None:
        super().__init__(message, feed_id=feed_id)
        self.status = status


class DestinationUnresolvedError(FeedError):
    """The configured destination channel no longer exists or cannot be reached."""


class PersistenceError(FeedError):
    """Reading feed configs or writing a watermark failed."""
