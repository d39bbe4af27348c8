from unittest.mock import AsyncMock, MagicMock

import pytest

from goatbot.datatypes.feed_datatypes import NormalizedItem
from goatbot.feeds.errors import PersistenceError, SourceFetchError
from goatbot.feeds.feed_pipeline import FeedOutcome, FeedPipeline


def _pipeline(items=None, *, fetch_error=None, channel=None, resolve=True):
    sources = MagicMock()
    if fetch_error is not None:
        sources.fetch_latest = AsyncMock(side_effect=fetch_error)
    else:
        sources.fetch_latest = AsyncMock(return_value=items or [])

    delivery = MagicMock()
    channel = channel if channel is not None else MagicMock(name="channel")
    delivery.resolve_channel = AsyncMock(return_value=channel if resolve else None)
    delivery.send = AsyncMock(return_value=999)

    store = MagicMock()
    store.update_watermark = AsyncMock(return_value=True)

    return FeedPipeline(sources, delivery, store), sources, delivery, store


@pytest.mark.asyncio
async def test_same_newest_id_posts_nothing(make_feed) -> None:
    feed = make_feed(last_posted_id="guid-1")
    pipeline, _, delivery, store = _pipeline([NormalizedItem(id="guid-1", title="Old")])

    outcome = await pipeline.process(feed)

    assert outcome is FeedOutcome.NO_NEW_ITEMS
    delivery.resolve_channel.assert_not_awaited()
    delivery.send.assert_not_awaited()
    store.update_watermark.assert_not_awaited()
    assert feed.last_posted_id == "guid-1"


@pytest.mark.asyncio
async def test_new_item_rendered_posted_and_watermarked(make_feed) -> None:
    feed = make_feed(last_posted_id="guid-1", message_template="{title}: {url}")
    items = [NormalizedItem(id="guid-2", title="New"), NormalizedItem(id="guid-1")]
    pipeline, sources, delivery, store = _pipeline(items)

    outcome = await pipeline.process(feed)

    assert outcome is FeedOutcome.POSTED
    sources.fetch_latest.assert_awaited_once_with("rss", "https://example.com/feed.xml")
    delivery.resolve_channel.assert_awaited_once_with("1234")
    delivery.send.assert_awaited_once_with(delivery.resolve_channel.return_value, "New: ")
    store.update_watermark.assert_awaited_once_with("feed-1", "guid-2")
    assert feed.last_posted_id == "guid-2"


@pytest.mark.asyncio
async def test_only_newest_item_is_posted(make_feed) -> None:
    feed = make_feed(last_posted_id="a")
    items = [NormalizedItem(id="c", title="C"), NormalizedItem(id="b", title="B"), NormalizedItem(id="a")]
    pipeline, _, delivery, store = _pipeline(items)

    await pipeline.process(feed)

    assert delivery.send.await_count == 1
    store.update_watermark.assert_awaited_once_with("feed-1", "c")


@pytest.mark.asyncio
async def test_first_post_when_no_watermark(make_feed) -> None:
    pipeline, _, delivery, _ = _pipeline([NormalizedItem(id="x", link="https://e/x")])

    assert await pipeline.process(make_feed()) is FeedOutcome.POSTED
    delivery.send.assert_awaited_once_with(delivery.resolve_channel.return_value, "**New Post:** https://e/x")


@pytest.mark.asyncio
async def test_empty_result_short_circuits(make_feed) -> None:
    pipeline, _, delivery, store = _pipeline([])

    assert await pipeline.process(make_feed()) is FeedOutcome.EMPTY
    delivery.resolve_channel.assert_not_awaited()
    store.update_watermark.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides", [{"is_enabled": False}, {"channel_id": None}])
async def test_invalid_config_skipped_without_fetch(make_feed, overrides) -> None:
    pipeline, sources, _, _ = _pipeline([NormalizedItem(id="x")])

    assert await pipeline.process(make_feed(**overrides)) is FeedOutcome.SKIPPED
    sources.fetch_latest.assert_not_awaited()


@pytest.mark.asyncio
async def test_keyword_filtered_comment_is_reevaluated_each_time(make_feed) -> None:
    feed = make_feed(
        platform="reddit_comments",
        source="abc123",
        last_posted_id="old",
        meta={"keywords": "help,bug"},
    )
    comment = NormalizedItem(id="c1", author="dave", body="just saying hi")
    pipeline, sources, delivery, store = _pipeline([comment])

    first = await pipeline.process(feed)
    second = await pipeline.process(feed)

    assert first is FeedOutcome.FILTERED
    assert second is FeedOutcome.FILTERED
    assert sources.fetch_latest.await_count == 2
    delivery.send.assert_not_awaited()
    store.update_watermark.assert_not_awaited()
    assert feed.last_posted_id == "old"


@pytest.mark.asyncio
async def test_short_comment_blocked_until_longer_one_arrives(make_feed) -> None:
    feed = make_feed(platform="reddit_comments", source="abc123", meta={"min_length": 20})
    pipeline, sources, delivery, store = _pipeline([NormalizedItem(id="c1", body="too short")])

    assert await pipeline.process(feed) is FeedOutcome.FILTERED

    sources.fetch_latest.return_value = [
        NormalizedItem(id="c2", body="this one is long enough to pass"),
        NormalizedItem(id="c1", body="too short"),
    ]
    assert await pipeline.process(feed) is FeedOutcome.POSTED
    store.update_watermark.assert_awaited_once_with("feed-1", "c2")


@pytest.mark.asyncio
async def test_filters_ignored_for_non_comment_feeds(make_feed) -> None:
    feed = make_feed(platform="reddit", meta={"min_length": 500})
    pipeline, _, _, _ = _pipeline([NormalizedItem(id="p1", title="Post")])

    assert await pipeline.process(feed) is FeedOutcome.POSTED


@pytest.mark.asyncio
async def test_unresolved_destination_leaves_watermark(make_feed) -> None:
    pipeline, _, delivery, store = _pipeline([NormalizedItem(id="x")], resolve=False)

    assert await pipeline.process(make_feed()) is FeedOutcome.UNRESOLVED_DESTINATION
    delivery.send.assert_not_awaited()
    store.update_watermark.assert_not_awaited()


@pytest.mark.asyncio
async def test_fetch_error_is_contained(make_feed) -> None:
    pipeline, _, delivery, _ = _pipeline(fetch_error=SourceFetchError("HTTP 500"))

    assert await pipeline.process(make_feed()) is FeedOutcome.FAILED
    delivery.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_send_failure_does_not_advance_watermark(make_feed) -> None:
    pipeline, _, delivery, store = _pipeline([NormalizedItem(id="x")])
    delivery.send.side_effect = RuntimeError("discord is down")

    assert await pipeline.process(make_feed()) is FeedOutcome.FAILED
    store.update_watermark.assert_not_awaited()


@pytest.mark.asyncio
async def test_watermark_write_failure_still_counts_as_posted(make_feed) -> None:
    feed = make_feed(last_posted_id="old")
    pipeline, _, delivery, store = _pipeline([NormalizedItem(id="new")])
    store.update_watermark.side_effect = PersistenceError("disk full", feed_id="feed-1")

    assert await pipeline.process(feed) is FeedOutcome.POSTED
    delivery.send.assert_awaited_once()
    assert feed.last_posted_id == "old"
