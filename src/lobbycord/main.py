"""
Lobbycord
=========

A Discord bot that gives every member who joins a lobby voice channel a room
of their own, keeps persistent rooms in an archive between visits, and
announces members' birthdays on a per-server schedule.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.
    Resolution order:
    1. LOBBYCORD_HOME environment variable, if set.
    2. If running in a frozen/compiled context (e.g., PyInstaller, Nuitka), use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("LOBBYCORD_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()

import asyncio
import discord
from dotenv import load_dotenv

from lobbycord.configuration.app_configuration import AppConfig
from lobbycord.database.database import Database
from lobbycord.state import LobbycordState, build_state
from lobbycord.util.logger import get_logger, handle_exception


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
    """Intents for voice presence, member lookups and channel events."""
    intents = discord.Intents.default()
    intents.guilds = True
    intents.voice_states = True
    intents.members = True
    return intents


def load_cogs(discord_bot_instance: discord.Bot, state: LobbycordState) -> None:
    """Register all cogs with the bot, sharing one runtime state."""
    from lobbycord.cog.commands import birthday_cmds, lobby_cmds
    from lobbycord.cog.listener import events_listener, voice_listener

    events_listener.setup(discord_bot_instance, state)
    voice_listener.setup(discord_bot_instance, state)
    lobby_cmds.setup(discord_bot_instance, state)
    birthday_cmds.setup(discord_bot_instance, state)

    logger.info("All cogs loaded successfully.")


def create_bot() -> discord.Bot:
    return discord.Bot(intents=build_intents())


async def start_bot(bot: discord.Bot, token: str) -> None:
    """Start the Discord bot and log around the connection."""
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    finally:
        logger.info("Discord bot start routine finished.")


async def shutdown_runtime(bot: discord.Bot | None, state: LobbycordState | None, database: Database) -> None:
    """Stop the schedule engine, close the bot and then the database."""
    if state is not None:
        try:
            await state.engine.shutdown()
        except Exception as exc:
            logger.exception("Error during schedule engine shutdown: %s", exc)
        state.reload_signal.close()

    if bot is not None and not bot.is_closed():
        try:
            await bot.close()
        except Exception as exc:
            logger.exception("Error while closing the Discord bot: %s", exc)

    try:
        await database.shutdown()
    except Exception as exc:
        logger.exception("Error during database shutdown: %s", exc)

    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Bootstrap the database, runtime state and bot, returning an exit code."""
    token = load_environment()
    config = AppConfig(BASE_DIR / "config" / "app_config.yml")

    database = Database()
    logger.info("Initializing database...")
    if not await database.initialize():
        logger.critical("Failed to initialize database")
        return 1

    bot: discord.Bot | None = None
    state: LobbycordState | None = None
    exit_code = 0
    try:
        bot = create_bot()
        state = build_state(bot, database, config)
        await state.rooms.load_from_database()
        load_cogs(bot, state)
        await start_bot(bot, token)
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(bot, state, database)

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process exit code."""
    sys.excepthook = handle_exception
    os.chdir(BASE_DIR)
    logger.info("Starting Lobbycord…")
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
    sys.exit(main())
