"""Delivery collaborator: resolves destination channels and sends feed posts."""

from __future__ import annotations

import discord

from goatbot.util.logger import get_logger

logger = get_logger("feed_delivery")


class DiscordChannelDelivery:
    """Sends rendered feed messages into Discord channels.

    Args:
        bot: Connected py-cord bot used for channel lookup and sending.
    """

    def __init__(self, bot: discord.Bot) -> None:
        self.bot = bot

    async def resolve_channel(self, channel_id: str | int | None) -> discord.abc.Messageable | None:
        """Return the channel for ``channel_id``, or None if it cannot be reached."""
        try:
            snowflake = int(str(channel_id).strip())
        except (TypeError, ValueError):
            logger.warning("[FEED_DELIVERY] Invalid channel id %r", channel_id)
            return None

        channel = self.bot.get_channel(snowflake)
        if channel is not None:
            return channel

        try:
            return await self.bot.fetch_channel(snowflake)
        except (discord.NotFound, discord.Forbidden) as exc:
            logger.warning("[FEED_DELIVERY] Channel %s unavailable: %s", snowflake, exc)
        except discord.HTTPException as exc:
            logger.error("[FEED_DELIVERY] Failed to fetch channel %s: %s", snowflake, exc)
        return None

    async def send(self, channel: discord.abc.Messageable, text: str) -> int:
        """Send ``text`` to ``channel`` and return the new message id."""
        message = await channel.send(text)
        return message.id
