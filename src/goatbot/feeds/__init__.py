"""
Feed polling and posting engine.

- **sources.py**: one adapter per platform (RSS, YouTube, Reddit posts,
  Reddit comments) behind a ``SourceRegistry`` lookup.
- **filters.py**: minimum length / AutoModerator / keyword filters for
  comment feeds.
- **templates.py**: placeholder substitution for post messages.
- **feed_store.py**: feed config reads and watermark writes.
- **delivery.py**: Discord channel resolution and sending.
- **feed_pipeline.py**: the per-feed fetch → dedup → filter → post → watermark run.
- **feed_scheduler.py**: the poll loop deciding which feeds are due each tick.
"""
