"""
Feed configuration and item data structures.

``FeedConfig`` mirrors one row of the ``feed_configs`` table, which the web
dashboard edits directly. The feed engine only reads these rows and writes
back ``last_posted_id``. ``NormalizedItem`` is the uniform shape every source
adapter produces, regardless of the wire format it read.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Mapping

from goatbot.util.logger import get_logger

logger = get_logger("feed_datatypes")

DEFAULT_CHECK_INTERVAL_MINUTES = 15
AUTOMOD_AUTHOR = "AutoModerator"


class Platform(Enum):
    """Source platforms a feed can poll."""

    RSS = "rss"
    YOUTUBE = "youtube"
    REDDIT = "reddit"
    REDDIT_COMMENTS = "reddit_comments"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class FeedMeta:
    """Optional filter configuration; only consulted for comment feeds.

    Attributes:
        min_length: Minimum comment body length, or None for no limit.
        ignore_automod: Drop comments written by AutoModerator.
        keywords: Lower-cased allow-list; empty means "accept anything".
    """
    min_length: int | None = None
    ignore_automod: bool = False
    keywords: List[str] = field(default_factory=list)

    @classmethod
    def parse(cls, raw: Any) -> "FeedMeta | None":
        """Build a FeedMeta from a mapping or JSON text, or None if absent/invalid."""
        if raw is None or raw == "":
            return None
        if isinstance(raw, (str, bytes)):
            try:
                raw = json.loads(raw)
            except ValueError:
                logger.warning("[FEED META] Ignoring malformed meta JSON: %r", raw)
                return None
        if not isinstance(raw, Mapping):
            logger.warning("[FEED META] Ignoring non-object meta: %r", raw)
            return None

        min_length = raw.get("min_length")
        try:
            min_length = int(min_length) if min_length is not None else None
        except (TypeError, ValueError):
            logger.warning("[FEED META] Ignoring non-integer min_length: %r", min_length)
            min_length = None

        return cls(
            min_length=min_length,
            ignore_automod=parse_flag(raw.get("ignore_automod")),
            keywords=parse_keywords(raw.get("keywords")),
        )

    def to_dict(self) -> dict:
        return {
            "min_length": self.min_length,
            "ignore_automod": self.ignore_automod,
            "keywords": ",".join(self.keywords),
        }


_TRUE_WORDS = {"true", "yes", "on", "1"}
_FALSE_WORDS = {"false", "no", "off", "0", ""}


def parse_flag(raw: Any) -> bool:
    """Read a boolean meta flag; strings such as ``"false"`` count as False."""
    if raw is None:
        return False
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return raw != 0
    if isinstance(raw, str):
        word = raw.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    logger.warning("[FEED META] Treating unrecognised flag value %r as false", raw)
    return False


def parse_keywords(raw: Any) -> List[str]:
    """Split a comma-separated keyword string into trimmed, lower-cased terms."""
    if not raw:
        return []
    if isinstance(raw, (list, tuple)):
        parts = [str(part) for part in raw]
    else:
        parts = str(raw).split(",")
    return [part.strip().lower() for part in parts if part.strip()]


def coerce_interval(value: Any, default: int = DEFAULT_CHECK_INTERVAL_MINUTES) -> int:
    """Return a positive polling interval in minutes, falling back to ``default``."""
    try:
        minutes = int(value)
    except (TypeError, ValueError):
        return default
    return minutes if minutes > 0 else default


@dataclass(slots=True)
class FeedConfig:
    """One configured feed.

    Attributes:
        id: Opaque unique identifier assigned by the dashboard.
        platform: Platform tag; kept as text so an unknown tag reaches the
            source registry and fails there as a fetch error.
        source: Feed URL, channel id, subreddit name, or post URL/id.
        channel_id: Destination channel snowflake, as text.
        message_template: Template with ``{title} {url} {author} {platform} {body}``.
        check_interval_minutes: Polling cadence in minutes.
        last_posted_id: Watermark; None means nothing was posted yet.
        is_enabled: Disabled feeds are never polled.
        meta: Comment filter settings.
    """
    id: str
    platform: str
    source: str
    channel_id: str | None
    message_template: str | None = None
    check_interval_minutes: int = DEFAULT_CHECK_INTERVAL_MINUTES
    last_posted_id: str | None = None
    is_enabled: bool = True
    meta: FeedMeta | None = None

    @property
    def interval_seconds(self) -> float:
        return self.check_interval_minutes * 60.0

    def describe(self) -> str:
        """Short identifying text used in log lines."""
        return f"{self.id} ({self.platform}: {self.source})"

    @classmethod
    def from_row(cls, row: Mapping[str, Any], default_interval: int = DEFAULT_CHECK_INTERVAL_MINUTES) -> "FeedConfig":
        """Build a FeedConfig from a ``feed_configs`` row (or any mapping with the same keys)."""
        channel_id = row["channel_id"]
        last_posted_id = row["last_posted_id"]
        return cls(
            id=str(row["id"]),
            platform=str(row["platform"] or "").strip().lower(),
            source=str(row["source"] or "").strip(),
            channel_id=str(channel_id) if channel_id not in (None, "") else None,
            message_template=row["message_template"],
            check_interval_minutes=coerce_interval(row["check_interval_minutes"], default_interval),
            last_posted_id=str(last_posted_id) if last_posted_id is not None else None,
            is_enabled=bool(row["is_enabled"]),
            meta=FeedMeta.parse(row["meta"]),
        )


@dataclass(slots=True)
class NormalizedItem:
    """A single post/video/comment as returned by a source adapter.

    ``id`` must be stable across repeated fetches of the same item: the
    source's explicit id, else its guid, else its link.
    """
    id: str
    title: str | None = None
    link: str | None = None
    author: str | None = None
    creator: str | None = None
    body: str | None = None
    pub_date: str | None = None
