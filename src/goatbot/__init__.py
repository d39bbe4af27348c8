"""
goatbot - Goat Gang community Discord bot

The bot's long-running piece is the feed engine: every minute it works out
which configured feeds are due, fetches their newest item from RSS, YouTube
or Reddit, skips anything already posted, applies comment filters, renders
the feed's message template and posts it to the feed's channel.

Core Components:

- **Feed engine** (``goatbot.feeds``): source adapters, filters, templates,
  the per-feed dispatch pipeline and the poll scheduler
- **Persistence** (``goatbot.database``, ``goatbot.repositories``): SQLite
  ``feed_configs`` table shared with the web dashboard
- **Configuration** (``goatbot.configuration``): ``config/app_config.yml``

Usage:
    from goatbot.main import main
    main()
"""
