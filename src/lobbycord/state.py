"""
Runtime objects shared by the cogs.

Everything is built once in :func:`build_state` and handed to each cog, so the
cache, the reload signal and the engine have exactly one owner and tests can
assemble their own copies.
"""

from __future__ import annotations

from dataclasses import dataclass

import discord

from lobbycord.configuration.app_configuration import AppConfig
from lobbycord.database.database import Database
from lobbycord.platform.discord_client import DiscordPlatformClient
from lobbycord.rooms.lifecycle import RoomLifecycleController
from lobbycord.rooms.state_cache import RoomStateCache
from lobbycord.scheduler.birthday_tasks import BirthdayTaskRunner
from lobbycord.scheduler.reload_signal import ReloadSignal
from lobbycord.scheduler.schedule_engine import ScheduleEngine
from lobbycord.services.birthday_service import BirthdayService
from lobbycord.ui.room_controls import DiscordRoomPromptSender


@dataclass
class LobbycordState:
    config: AppConfig
    database: Database
    platform: DiscordPlatformClient
    rooms: RoomLifecycleController
    reload_signal: ReloadSignal
    engine: ScheduleEngine
    birthdays: BirthdayService


def build_state(bot: discord.Bot, database: Database, config: AppConfig) -> LobbycordState:
    """Wire the room controller, birthday service and schedule engine around ``bot``."""
    platform = DiscordPlatformClient(bot)
    rooms = RoomLifecycleController(
        RoomStateCache(),
        database,
        platform,
        archive_category_name=config.archive_category_name,
        default_lobby_name=config.default_lobby_name,
        message_scan_limit=config.message_scan_limit,
        max_name_length=config.max_room_name_length,
    )
    rooms.attach_prompts(DiscordRoomPromptSender(platform, rooms))

    reload_signal = ReloadSignal()
    engine = ScheduleEngine(
        database,
        BirthdayTaskRunner(database, platform),
        reload_signal,
        retry_backoff_seconds=config.retry_backoff_seconds,
    )
    return LobbycordState(
        config=config,
        database=database,
        platform=platform,
        rooms=rooms,
        reload_signal=reload_signal,
        engine=engine,
        birthdays=BirthdayService(database, reload_signal),
    )
