"""
Source adapters for the feed engine.

Each adapter turns one platform's wire format into a list of
:class:`NormalizedItem`, newest first:

- ``rss`` / ``youtube``: RSS or Atom XML parsed with feedparser. A bare
  YouTube channel id is expanded into the channel's video feed URL.
- ``reddit``: the subreddit "new" JSON listing.
- ``reddit_comments``: the JSON comment tree of a single post, sorted by new.

All HTTP goes through one shared :class:`SourceHttpClient` so every request
carries the client identifier header and an explicit total timeout. Any
failure to reach or read a source surfaces as :class:`SourceFetchError`.
"""

from __future__ import annotations

import asyncio
import json
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping

import aiohttp
import feedparser

from goatbot.configuration.feed_settings import DEFAULT_USER_AGENT
from goatbot.datatypes.feed_datatypes import NormalizedItem, Platform
from goatbot.feeds.errors import SourceFetchError
from goatbot.util.logger import get_logger

logger = get_logger("feed_sources")

YOUTUBE_FEED_URL = "https://www.youtube.com/feeds/videos.xml?channel_id={channel_id}"
REDDIT_API_BASE = "https://www.reddit.com"
REDDIT_LINK_BASE = "https://reddit.com"
REDDIT_LISTING_LIMIT = 5
REDDIT_COMMENT_LIMIT = 20
REDDIT_COMMENT_KIND = "t1"

_SUBREDDIT_PREFIX = re.compile(r"^/?r/", re.IGNORECASE)
_POST_ID_IN_URL = re.compile(r"comments/([A-Za-z0-9]+)/?")


class SourceHttpClient:
    """Thin wrapper over a shared aiohttp session for source requests.

    Args:
        session: Session owned by the caller; this class never closes it.
        user_agent: Descriptive client identifier sent with every request.
        timeout_seconds: Total deadline for one request, body included.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_seconds: float = 20.0,
    ) -> None:
        self.session = session
        self.headers = {"User-Agent": user_agent}
        self.timeout_seconds = timeout_seconds
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def get_bytes(self, url: str, params: Mapping[str, Any] | None = None) -> bytes:
        """GET ``url`` and return the raw body; non-2xx statuses raise SourceFetchError."""
        try:
            async with self.session.get(url, params=params, headers=self.headers, timeout=self.timeout) as response:
                if not 200 <= response.status < 300:
                    raise SourceFetchError(f"HTTP {response.status} from {url}", status=response.status)
                return await response.read()
        except asyncio.TimeoutError as exc:
            raise SourceFetchError(f"Timed out after {self.timeout_seconds:.0f}s fetching {url}") from exc
        except aiohttp.ClientError as exc:
            raise SourceFetchError(f"Network error fetching {url}: {exc}") from exc

    async def get_json(self, url: str, params: Mapping[str, Any] | None = None) -> Any:
        body = await self.get_bytes(url, params)
        try:
            return json.loads(body)
        except ValueError as exc:
            raise SourceFetchError(f"Invalid JSON from {url}: {exc}") from exc


class SourceAdapter(ABC):
    """Abstract base for source adapters."""

    platform: Platform

    def __init__(self, http: SourceHttpClient) -> None:
        self.http = http

    @abstractmethod
    async def fetch_latest(self, source: str) -> List[NormalizedItem]:
        """Fetch the newest items for ``source``, newest first.

        Raises:
            SourceFetchError: The source could not be fetched or parsed.
        """
        ...


# ---------------------------------------------------------------------------
# RSS / Atom
# ---------------------------------------------------------------------------

class RssSource(SourceAdapter):
    """Generic RSS/Atom feed; items keep the order the document lists them in."""

    platform = Platform.RSS

    def feed_url(self, source: str) -> str:
        return source

    async def fetch_latest(self, source: str) -> List[NormalizedItem]:
        url = self.feed_url(source)
        content = await self.http.get_bytes(url)
        # feedparser is synchronous; keep the event loop free while it parses
        parsed = await asyncio.to_thread(feedparser.parse, content)

        entries = parsed.get("entries") or []
        if parsed.get("bozo") and not entries:
            raise SourceFetchError(f"Unparseable feed at {url}: {parsed.get('bozo_exception')}")

        items: List[NormalizedItem] = []
        for entry in entries:
            item = self.to_item(entry)
            if item is not None:
                items.append(item)
        return items

    @staticmethod
    def to_item(entry: Mapping[str, Any]) -> NormalizedItem | None:
        item_id = entry.get("id") or entry.get("guid") or entry.get("link")
        if not item_id:
            return None

        authors = entry.get("authors") or []
        creator = None
        if authors and isinstance(authors[0], Mapping):
            creator = authors[0].get("name")

        return NormalizedItem(
            id=str(item_id),
            title=entry.get("title"),
            link=entry.get("link"),
            author=entry.get("author"),
            creator=creator,
            pub_date=entry.get("published") or entry.get("updated"),
        )


class YouTubeSource(RssSource):
    """YouTube channel uploads feed; ``source`` is a channel id or a full feed URL."""

    platform = Platform.YOUTUBE

    def feed_url(self, source: str) -> str:
        if source.startswith("http"):
            return source
        return YOUTUBE_FEED_URL.format(channel_id=source)


# ---------------------------------------------------------------------------
# Reddit
# ---------------------------------------------------------------------------

def _iso_from_epoch(value: Any) -> str | None:
    try:
        return datetime.fromtimestamp(float(value), tz=timezone.utc).isoformat()
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def _reddit_link(permalink: str | None) -> str | None:
    return f"{REDDIT_LINK_BASE}{permalink}" if permalink else None


class RedditSource(SourceAdapter):
    """Newest posts of a subreddit; ``source`` is ``name`` or ``r/name``."""

    platform = Platform.REDDIT

    def __init__(self, http: SourceHttpClient, api_base: str = REDDIT_API_BASE) -> None:
        super().__init__(http)
        self.api_base = api_base.rstrip("/")

    @staticmethod
    def subreddit_name(source: str) -> str:
        return _SUBREDDIT_PREFIX.sub("", source.strip()).strip("/")

    async def fetch_latest(self, source: str) -> List[NormalizedItem]:
        subreddit = self.subreddit_name(source)
        if not subreddit:
            raise SourceFetchError(f"Empty subreddit name in {source!r}")

        url = f"{self.api_base}/r/{subreddit}/new.json"
        payload = await self.http.get_json(url, {"limit": REDDIT_LISTING_LIMIT})

        try:
            children = payload["data"]["children"]
            return [self.to_item(child["data"]) for child in children]
        except (KeyError, TypeError) as exc:
            raise SourceFetchError(f"Unexpected listing shape from {url}: {exc!r}") from exc

    @staticmethod
    def to_item(data: Mapping[str, Any]) -> NormalizedItem:
        return NormalizedItem(
            id=str(data["id"]),
            title=data.get("title"),
            link=_reddit_link(data.get("permalink")),
            author=data.get("author"),
            pub_date=_iso_from_epoch(data.get("created_utc")),
        )


class RedditCommentsSource(RedditSource):
    """Newest top-level comments on one post; ``source`` is a post id or permalink."""

    platform = Platform.REDDIT_COMMENTS

    @staticmethod
    def post_id(source: str) -> str:
        """Resolve a permalink or bare id to the bare post id.

        Raises:
            SourceFetchError: A URL was given but holds no ``comments/<id>/`` segment.
        """
        source = source.strip()
        match = _POST_ID_IN_URL.search(source)
        if match:
            return match.group(1)
        if "/" in source or source.startswith("http"):
            raise SourceFetchError(f"Cannot find a post id in {source!r}")
        return source.removeprefix("t3_")

    async def fetch_latest(self, source: str) -> List[NormalizedItem]:
        post_id = self.post_id(source)
        if not post_id:
            raise SourceFetchError(f"Empty post id in {source!r}")

        url = f"{self.api_base}/comments/{post_id}.json"
        payload = await self.http.get_json(url, {"sort": "new", "limit": REDDIT_COMMENT_LIMIT})

        try:
            post_listing, comment_listing = payload[0], payload[1]
            posts = post_listing["data"]["children"]
            title = posts[0]["data"].get("title") if posts else None
            return [
                self.to_comment(child["data"], title)
                for child in comment_listing["data"]["children"]
                if child.get("kind") == REDDIT_COMMENT_KIND
            ]
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise SourceFetchError(f"Unexpected comment tree shape from {url}: {exc!r}") from exc

    @staticmethod
    def to_comment(data: Mapping[str, Any], title: str | None) -> NormalizedItem:
        return NormalizedItem(
            id=str(data["id"]),
            title=title,
            link=_reddit_link(data.get("permalink")),
            author=data.get("author"),
            body=data.get("body"),
            pub_date=_iso_from_epoch(data.get("created_utc")),
        )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class SourceRegistry:
    """Platform tag → adapter lookup.

    Adding a new source type means writing a :class:`SourceAdapter` subclass
    and registering it here; nothing in the pipeline changes.
    """

    def __init__(self, adapters: Dict[Platform, SourceAdapter] | None = None) -> None:
        self._adapters: Dict[Platform, SourceAdapter] = dict(adapters or {})

    @classmethod
    def default(cls, http: SourceHttpClient, reddit_api_base: str = REDDIT_API_BASE) -> "SourceRegistry":
        """Registry with one adapter per built-in platform, sharing ``http``."""
        return cls({
            Platform.RSS: RssSource(http),
            Platform.YOUTUBE: YouTubeSource(http),
            Platform.REDDIT: RedditSource(http, reddit_api_base),
            Platform.REDDIT_COMMENTS: RedditCommentsSource(http, reddit_api_base),
        })

    def register(self, platform: Platform, adapter: SourceAdapter) -> None:
        self._adapters[platform] = adapter

    def adapter_for(self, platform: str | Platform) -> SourceAdapter:
        try:
            adapter = self._adapters.get(Platform(platform))
        except ValueError:
            adapter = None
        if adapter is None:
            raise SourceFetchError(f"Unsupported platform {platform!r}")
        return adapter

    async def fetch_latest(self, platform: str | Platform, source: str) -> List[NormalizedItem]:
        """Fetch newest-first items for ``source`` with the adapter registered for ``platform``."""
        adapter = self.adapter_for(platform)
        items = await adapter.fetch_latest(source)
        logger.debug("[FEED_SOURCES] %s %s returned %d item(s)", platform, source, len(items))
        return items
