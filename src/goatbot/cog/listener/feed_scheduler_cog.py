"""Cog hosting the feed scheduler for the lifetime of the bot."""

from __future__ import annotations

import asyncio

import aiohttp
import discord
from discord.ext import commands

from goatbot.configuration.app_configuration import AppConfig, app_config
from goatbot.database.db_connection import ConnectionManager, db_connection
from goatbot.feeds.delivery import DiscordChannelDelivery
from goatbot.feeds.feed_pipeline import FeedPipeline
from goatbot.feeds.feed_scheduler import FeedScheduler
from goatbot.feeds.feed_store import FeedConfigStore
from goatbot.feeds.sources import SourceHttpClient, SourceRegistry
from goatbot.repositories.feed_config_repo import FeedConfigRepository
from goatbot.util.logger import get_logger

logger = get_logger("feed_scheduler_cog")


class FeedSchedulerCog(commands.Cog):
    """
    Builds the feed engine once the gateway is ready and keeps it running.

    ``on_ready`` fires again after every reconnect; the scheduler is only
    created and started the first time.
    """

    def __init__(
        self,
        bot: discord.Bot,
        config: AppConfig = app_config,
        connection: ConnectionManager = db_connection,
    ) -> None:
        self.bot = bot
        self.config = config
        self.connection = connection
        self.session: aiohttp.ClientSession | None = None
        self.scheduler: FeedScheduler | None = None
        self._session_closing: asyncio.Task[None] | None = None

    def build_scheduler(self, session: aiohttp.ClientSession) -> FeedScheduler:
        settings = self.config.feeds
        http = SourceHttpClient(
            session,
            user_agent=settings.user_agent,
            timeout_seconds=settings.fetch_timeout_seconds,
        )
        store = FeedConfigStore(
            self.connection,
            FeedConfigRepository(default_interval=settings.default_check_interval_minutes),
        )
        pipeline = FeedPipeline(SourceRegistry.default(http), DiscordChannelDelivery(self.bot), store)
        return FeedScheduler(
            store,
            pipeline,
            tick_seconds=settings.tick_seconds,
            backoff_enabled=settings.backoff_enabled,
            backoff_max_exponent=settings.backoff_max_exponent,
        )

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        if self.scheduler is not None:
            return
        self.session = aiohttp.ClientSession()
        self.scheduler = self.build_scheduler(self.session)
        self.scheduler.start()
        logger.info("[FEED_SCHEDULER_COG] Feed engine started")

    async def close(self) -> None:
        """Stop the scheduler and release the HTTP session."""
        if self.scheduler is not None:
            await self.scheduler.shutdown()
            self.scheduler = None
        if self.session is not None:
            await self.session.close()
            self.session = None

    def cog_unload(self) -> None:
        if self.scheduler is not None:
            self.scheduler.cancel()
            self.scheduler = None
        if self.session is not None:
            self._session_closing = asyncio.create_task(self.session.close())
            self.session = None
        logger.info("[FEED_SCHEDULER_COG] Feed engine stopped")


def setup(bot: discord.Bot) -> None:
    bot.add_cog(FeedSchedulerCog(bot))
