"""
Content filters for comment feeds.

Only ``reddit_comments`` feeds with a ``meta`` object are filtered. A filtered
item does not advance the watermark, so the same newest comment is evaluated
(and rejected) again on every due tick until a newer comment replaces it.
"""

from __future__ import annotations

from goatbot.datatypes.feed_datatypes import AUTOMOD_AUTHOR, FeedConfig, FeedMeta, NormalizedItem, Platform


def applies_to(feed: FeedConfig) -> bool:
    """Return True if ``feed`` should have its items filtered."""
    return feed.platform == Platform.REDDIT_COMMENTS.value and feed.meta is not None


def check_filters(item: NormalizedItem, meta: FeedMeta) -> str | None:
    """Return the name of the first predicate ``item`` fails, or None if it passes."""
    body = item.body or ""

    if meta.min_length is not None and len(body) < meta.min_length:
        return "min_length"

    if meta.ignore_automod and item.author == AUTOMOD_AUTHOR:
        return "ignore_automod"

    if meta.keywords:
        lowered = body.lower()
        if not any(keyword in lowered for keyword in meta.keywords):
            return "keywords"

    return None
