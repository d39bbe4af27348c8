"""
Goat Gang community bot
=======================

Connects to Discord and runs the feed engine, which mirrors RSS, YouTube and
Reddit content into the guild's channels according to the feed definitions
the web dashboard stores in the database.
"""

import os
import sys
from pathlib import Path

def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. GOATBOT_HOME environment variable, if set.
    2. If running in a frozen/compiled context (e.g., PyInstaller, Nuitka), use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("GOATBOT_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]

BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
import discord
from dotenv import load_dotenv

from goatbot.configuration.app_configuration import app_config
from goatbot.database.db_connection import db_connection
from goatbot.database.db_schema import SchemaManager
from goatbot.util.logger import get_logger, handle_exception


logger = get_logger("main")


def load_environment() -> str:
    """Load environment variables and return the Discord bot token.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Intents for channel lookup and posting; no privileged intents needed."""
    intents = discord.Intents.default()
    intents.guilds = True
    intents.messages = True
    return intents


def load_cogs(discord_bot_instance: discord.Bot) -> None:
    """Register the runtime cogs with the bot."""
    from goatbot.cog.listener import feed_scheduler_cog

    feed_scheduler_cog.setup(discord_bot_instance)
    logger.info("All cogs loaded successfully.")


def create_bot() -> discord.Bot:
    """Instantiate the Discord bot and register all cogs."""
    bot = discord.Bot(intents=build_intents())
    load_cogs(bot)
    return bot


async def initialize_database() -> None:
    """Open the shared connection and make sure the schema exists."""
    await db_connection.open(app_config.database_path)
    async with db_connection.transaction() as conn:
        await SchemaManager.initialize_schema(conn)


async def shutdown_runtime(bot: discord.Bot | None = None) -> None:
    """Stop the feed engine, close the Discord client and the database."""
    if bot is not None:
        cog = bot.get_cog("FeedSchedulerCog")
        if cog is not None:
            try:
                await cog.close()
            except Exception as exc:
                logger.exception("Error during feed engine shutdown: %s", exc)

        if not bot.is_closed():
            try:
                await bot.close()
            except Exception as exc:
                logger.exception("Error while closing Discord client: %s", exc)

    await db_connection.close()
    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Bootstrap the database and the bot, returning an exit code."""
    token = load_environment()

    try:
        logger.info("Initializing database...")
        await initialize_database()
    except Exception as exc:
        logger.critical("Failed to initialize database: %s", exc)
        await db_connection.close()
        return 1

    try:
        bot = create_bot()
    except Exception as exc:
        logger.critical("Failed to initialize Discord bot: %s", exc)
        await shutdown_runtime()
        return 1

    exit_code = 0
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    except discord.LoginFailure as exc:
        logger.critical("Discord rejected the bot token: %s", exc)
        exit_code = 1
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(bot)

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process exit code."""
    logger.info("Starting Goat Gang bot…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        return 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    sys.excepthook = handle_exception
    sys.exit(main())
