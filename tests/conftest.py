"""
Pytest configuration and fixtures for goatbot tests.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to path so imports work without an install
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from goatbot.datatypes.feed_datatypes import FeedConfig, FeedMeta  # noqa: E402


@pytest.fixture
def make_feed():
    """Factory for FeedConfig objects with sensible defaults."""

    def _make(**overrides) -> FeedConfig:
        values = {
            "id": "feed-1",
            "platform": "rss",
            "source": "https://example.com/feed.xml",
            "channel_id": "1234",
            "message_template": None,
            "check_interval_minutes": 15,
            "last_posted_id": None,
            "is_enabled": True,
            "meta": None,
        }
        values.update(overrides)
        if isinstance(values["meta"], dict):
            values["meta"] = FeedMeta.parse(values["meta"])
        return FeedConfig(**values)

    return _make
