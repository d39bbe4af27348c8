import asyncio
import json

import aiohttp
import pytest

from goatbot.datatypes.feed_datatypes import NormalizedItem, Platform
from goatbot.feeds.errors import SourceFetchError
from goatbot.feeds.sources import (
    RedditCommentsSource,
    RedditSource,
    RssSource,
    SourceAdapter,
    SourceHttpClient,
    SourceRegistry,
    YouTubeSource,
)

RSS_XML = b"""<?xml version="1.0"?>
<rss version="2.0">
  <channel>
    <title>Example</title>
    <item>
      <title>New</title>
      <link>https://example.com/2</link>
      <guid isPermaLink="false">guid-2</guid>
    </item>
    <item>
      <title>Old</title>
      <link>https://example.com/1</link>
      <guid isPermaLink="false">guid-1</guid>
    </item>
  </channel>
</rss>
"""

YOUTUBE_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom" xmlns:yt="http://www.youtube.com/xml/schemas/2015">
  <title>Channel</title>
  <entry>
    <id>yt:video:abc123</id>
    <title>Latest video</title>
    <link rel="alternate" href="https://www.youtube.com/watch?v=abc123"/>
    <author><name>Goat Channel</name></author>
    <published>2024-01-01T00:00:00+00:00</published>
  </entry>
</feed>
"""

REDDIT_LISTING = {
    "data": {
        "children": [
            {
                "kind": "t3",
                "data": {
                    "id": "p2",
                    "title": "Second",
                    "permalink": "/r/python/comments/p2/second/",
                    "created_utc": 1700000000,
                    "author": "alice",
                },
            },
            {
                "kind": "t3",
                "data": {
                    "id": "p1",
                    "title": "First",
                    "permalink": "/r/python/comments/p1/first/",
                    "created_utc": 1690000000,
                    "author": "bob",
                },
            },
        ]
    }
}

COMMENT_TREE = [
    {"data": {"children": [{"kind": "t3", "data": {"title": "Bug reports"}}]}},
    {
        "data": {
            "children": [
                {
                    "kind": "t1",
                    "data": {
                        "id": "c9",
                        "author": "carol",
                        "body": "found a bug",
                        "permalink": "/r/goat/comments/xyz789/bug_reports/c9/",
                        "created_utc": 1700000000,
                    },
                },
                {"kind": "more", "data": {"id": "more1", "children": ["c1", "c2"]}},
            ]
        }
    },
]


class FakeResponse:
    def __init__(self, status: int = 200, body: bytes = b"") -> None:
        self.status = status
        self.body = body

    async def read(self) -> bytes:
        return self.body

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, *exc_info) -> bool:
        return False


class FakeSession:
    """Stands in for aiohttp.ClientSession; maps URL to a response or exception."""

    def __init__(self, responses: dict) -> None:
        self.responses = responses
        self.calls: list[tuple[str, dict]] = []

    def get(self, url: str, **kwargs):
        self.calls.append((url, kwargs))
        response = self.responses[url]
        if isinstance(response, BaseException):
            raise response
        return response


def _http(responses: dict) -> tuple[SourceHttpClient, FakeSession]:
    session = FakeSession(responses)
    return SourceHttpClient(session, user_agent="goat-test/1.0", timeout_seconds=5), session


def _json(payload) -> FakeResponse:
    return FakeResponse(body=json.dumps(payload).encode())


@pytest.mark.asyncio
async def test_http_client_sends_user_agent_and_timeout() -> None:
    http, session = _http({"https://example.com/x": FakeResponse(body=b"ok")})

    assert await http.get_bytes("https://example.com/x") == b"ok"

    _, kwargs = session.calls[0]
    assert kwargs["headers"] == {"User-Agent": "goat-test/1.0"}
    assert kwargs["timeout"].total == 5


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(status=404),
        FakeResponse(status=503),
        asyncio.TimeoutError(),
        aiohttp.ClientConnectionError("connection refused"),
    ],
)
async def test_http_client_failures_become_source_fetch_error(response) -> None:
    http, _ = _http({"https://example.com/x": response})

    with pytest.raises(SourceFetchError):
        await http.get_bytes("https://example.com/x")


@pytest.mark.asyncio
async def test_http_client_status_recorded() -> None:
    http, _ = _http({"https://example.com/x": FakeResponse(status=429)})

    with pytest.raises(SourceFetchError) as excinfo:
        await http.get_bytes("https://example.com/x")

    assert excinfo.value.status == 429


@pytest.mark.asyncio
async def test_http_client_invalid_json() -> None:
    http, _ = _http({"https://example.com/x": FakeResponse(body=b"<html>")})

    with pytest.raises(SourceFetchError):
        await http.get_json("https://example.com/x")


@pytest.mark.asyncio
async def test_rss_items_newest_first_with_guid_ids() -> None:
    http, _ = _http({"https://example.com/feed.xml": FakeResponse(body=RSS_XML)})

    items = await RssSource(http).fetch_latest("https://example.com/feed.xml")

    assert [item.id for item in items] == ["guid-2", "guid-1"]
    assert items[0].title == "New"
    assert items[0].link == "https://example.com/2"


@pytest.mark.asyncio
async def test_rss_unparseable_document_raises() -> None:
    http, _ = _http({"https://example.com/feed.xml": FakeResponse(body=b"this is not a feed <<<")})

    with pytest.raises(SourceFetchError):
        await RssSource(http).fetch_latest("https://example.com/feed.xml")


def test_rss_id_falls_back_to_link() -> None:
    item = RssSource.to_item({"title": "No guid", "link": "https://example.com/a"})

    assert item is not None
    assert item.id == "https://example.com/a"
    assert RssSource.to_item({"title": "Nothing to key on"}) is None


@pytest.mark.asyncio
async def test_youtube_channel_id_expanded_to_feed_url() -> None:
    url = "https://www.youtube.com/feeds/videos.xml?channel_id=UC123"
    http, session = _http({url: FakeResponse(body=YOUTUBE_XML)})

    items = await YouTubeSource(http).fetch_latest("UC123")

    assert session.calls[0][0] == url
    assert items[0].id == "yt:video:abc123"
    assert items[0].link == "https://www.youtube.com/watch?v=abc123"
    assert items[0].author == "Goat Channel"


def test_youtube_full_url_kept() -> None:
    source = YouTubeSource(_http({})[0])

    assert source.feed_url("https://www.youtube.com/feeds/videos.xml?channel_id=X") == (
        "https://www.youtube.com/feeds/videos.xml?channel_id=X"
    )


@pytest.mark.asyncio
async def test_reddit_listing_mapped() -> None:
    http, session = _http({"https://www.reddit.com/r/python/new.json": _json(REDDIT_LISTING)})

    items = await RedditSource(http).fetch_latest("r/python")

    url, kwargs = session.calls[0]
    assert url == "https://www.reddit.com/r/python/new.json"
    assert kwargs["params"] == {"limit": 5}
    assert [item.id for item in items] == ["p2", "p1"]
    assert items[0].link == "https://reddit.com/r/python/comments/p2/second/"
    assert items[0].author == "alice"
    assert items[0].pub_date == "2023-11-14T22:13:20+00:00"


@pytest.mark.parametrize("source", ["python", "r/python", "/r/python/", "R/python"])
def test_subreddit_name_prefix_stripped(source) -> None:
    assert RedditSource.subreddit_name(source) == "python"


@pytest.mark.asyncio
async def test_reddit_unexpected_shape_raises() -> None:
    http, _ = _http({"https://www.reddit.com/r/python/new.json": _json({"error": 403})})

    with pytest.raises(SourceFetchError):
        await RedditSource(http).fetch_latest("python")


@pytest.mark.parametrize(
    "source, expected",
    [
        ("xyz789", "xyz789"),
        ("https://www.reddit.com/r/goat/comments/xyz789/bug_reports/", "xyz789"),
        ("https://reddit.com/comments/xyz789/", "xyz789"),
    ],
)
def test_post_id_resolution(source, expected) -> None:
    assert RedditCommentsSource.post_id(source) == expected


def test_post_id_url_without_comments_segment_raises() -> None:
    with pytest.raises(SourceFetchError):
        RedditCommentsSource.post_id("https://www.reddit.com/r/goat/")


@pytest.mark.asyncio
async def test_reddit_comments_keeps_only_comment_kind() -> None:
    url = "https://www.reddit.com/comments/xyz789.json"
    http, session = _http({url: _json(COMMENT_TREE)})

    items = await RedditCommentsSource(http).fetch_latest(
        "https://www.reddit.com/r/goat/comments/xyz789/bug_reports/"
    )

    assert session.calls[0][1]["params"] == {"sort": "new", "limit": 20}
    assert len(items) == 1
    comment = items[0]
    assert comment.id == "c9"
    assert comment.title == "Bug reports"
    assert comment.body == "found a bug"
    assert comment.author == "carol"
    assert comment.link == "https://reddit.com/r/goat/comments/xyz789/bug_reports/c9/"


@pytest.mark.asyncio
async def test_reddit_comments_bad_tree_raises() -> None:
    url = "https://www.reddit.com/comments/xyz789.json"
    http, _ = _http({url: _json({"data": {}})})

    with pytest.raises(SourceFetchError):
        await RedditCommentsSource(http).fetch_latest("xyz789")


@pytest.mark.asyncio
async def test_registry_dispatches_by_platform() -> None:
    http, _ = _http({"https://www.reddit.com/r/python/new.json": _json(REDDIT_LISTING)})
    registry = SourceRegistry.default(http)

    items = await registry.fetch_latest("reddit", "python")

    assert items[0].id == "p2"
    assert isinstance(registry.adapter_for(Platform.YOUTUBE), YouTubeSource)


def test_registry_unknown_platform_raises() -> None:
    registry = SourceRegistry.default(_http({})[0])

    with pytest.raises(SourceFetchError):
        registry.adapter_for("mastodon")


class _StaticSource(SourceAdapter):
    platform = Platform.RSS

    async def fetch_latest(self, source: str) -> list:
        return [NormalizedItem(id=f"static:{source}", title="pinned")]


@pytest.mark.asyncio
async def test_registry_register_replaces_adapter() -> None:
    http = _http({})[0]
    registry = SourceRegistry()
    with pytest.raises(SourceFetchError):
        registry.adapter_for("rss")

    registry.register(Platform.RSS, _StaticSource(http))
    items = await registry.fetch_latest("rss", "https://example.com/feed")

    assert [item.id for item in items] == ["static:https://example.com/feed"]
    assert isinstance(registry.adapter_for(Platform.RSS), _StaticSource)
