"""Message template rendering for feed posts."""

from __future__ import annotations

import re

from goatbot.datatypes.feed_datatypes import NormalizedItem, Platform

DEFAULT_TEMPLATE = "**New Post:** {url}"
BODY_LIMIT = 1500
ELLIPSIS = "..."

_PLACEHOLDER = re.compile(r"\{(title|url|author|platform|body)\}")


def truncate_body(body: str | None, limit: int = BODY_LIMIT) -> str:
    if not body:
        return ""
    if len(body) <= limit:
        return body
    return body[:limit] + ELLIPSIS


def render_message(template: str | None, item: NormalizedItem, platform: str | Platform) -> str:
    """Fill ``template`` with fields of ``item``.

    Every occurrence of a known placeholder is replaced in a single pass, so
    placeholder-looking text inside item fields is never expanded again.
    Anything else in braces is left as written.
    """
    values = {
        "title": item.title or "No Title",
        "url": item.link or "",
        "author": item.author or item.creator or "Unknown",
        "platform": str(platform),
        "body": truncate_body(item.body),
    }
    return _PLACEHOLDER.sub(lambda match: values[match.group(1)], template or DEFAULT_TEMPLATE)
