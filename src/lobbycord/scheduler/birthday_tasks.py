"""
Birthday work triggered by the schedule engine.

The runner keeps no state between runs: each call reads today's birthdays and
the guild configuration from the database and acts through the platform
client. "Today" is the UTC date.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Callable, List, Optional, Set, Tuple

from lobbycord.database.database import Database
from lobbycord.datatypes.birthday_datatypes import Birthday, BirthdayChannelConfig
from lobbycord.datatypes.discord_datatypes import GuildID
from lobbycord.datatypes.schedule_datatypes import RoleAction, RoleSyncResult
from lobbycord.platform.discord_client import DiscordPlatformClient
from lobbycord.util.date_utils import format_date_display, utc_now
from lobbycord.util.format_utils import (
    DEFAULT_BIRTHDAY_FOOTER,
    DEFAULT_BIRTHDAY_HEADER,
    build_birthday_entry,
    build_combined_message,
    format_user_mention,
    process_custom_text,
)
from lobbycord.util.logger import get_logger

logger = get_logger("birthday_tasks")

ROLE_REASON_ADD = "Birthday today"
ROLE_REASON_REMOVE = "Birthday is over"


def determine_role_action(has_birthday_today: bool, has_role: bool) -> RoleAction:
    """
    Decide what happens to a member's birthday role.

    ======================  ==========  =========
    birthday today          has role    action
    ======================  ==========  =========
    yes                     no          ADD
    no                      yes         REMOVE
    otherwise                           NO_ACTION
    ======================  ==========  =========
    """
    if has_birthday_today and not has_role:
        return RoleAction.ADD
    if not has_birthday_today and has_role:
        return RoleAction.REMOVE
    return RoleAction.NO_ACTION


def compose_birthday_message(
    celebrants: List[Tuple[Birthday, str]],
    config: BirthdayChannelConfig,
    today: datetime,
) -> str:
    """
    Build the announcement for ``celebrants`` (birthday, display name) pairs.

    Guild templates replace the default header, lines and footer when set.
    """
    date_text = format_date_display(today.month, today.day)
    header = process_custom_text(config.custom_header) or DEFAULT_BIRTHDAY_HEADER
    footer = process_custom_text(config.custom_footer) or DEFAULT_BIRTHDAY_FOOTER
    entries = [
        build_birthday_entry(
            user_name=display_name,
            mention=format_user_mention(birthday.user_id),
            age=birthday.age_on(today.year),
            template_with_age=config.custom_message,
            template_without_age=config.custom_message_without_age,
            date=date_text,
        )
        for birthday, display_name in celebrants
    ]
    return build_combined_message(header, entries, footer)


def _has_role(member, role_id) -> bool:
    return any(role.id == int(role_id) for role in getattr(member, "roles", ()))


class BirthdayTaskRunner:
    """Sends birthday announcements and keeps the birthday role in sync."""

    def __init__(
        self,
        database: Database,
        platform: DiscordPlatformClient,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.database = database
        self.platform = platform
        self.clock = clock

    async def _resolve_member(self, guild_id: GuildID, birthday: Birthday):
        try:
            return await self.platform.fetch_member(guild_id, birthday.user_id)
        except Exception as exc:
            logger.debug("[BIRTHDAY TASKS] Lookup of %s in guild %s failed: %s", birthday.user_id, guild_id, exc)
            return None

    async def run_birthday_notify(self, guild_id: GuildID) -> bool:
        """
        Announce today's birthdays of ``guild_id``'s members in its birthday channel.

        Users who are not (or can no longer be confirmed as) members of the
        guild are left out. Nothing is sent when no member has a birthday or
        the guild has no birthday channel.

        Returns:
            True when an announcement was sent.
        """
        today = self.clock()
        birthdays = await self.database.get_birthdays_on_date(today.month, today.day)
        if not birthdays:
            logger.info("[BIRTHDAY TASKS] No birthdays on %02d/%02d", today.day, today.month)
            return False

        config = await self.database.get_birthday_channel(guild_id)
        if config is None:
            logger.info("[BIRTHDAY TASKS] Guild %s has no birthday channel configured", guild_id)
            return False

        celebrants: List[Tuple[Birthday, str]] = []
        for birthday in birthdays:
            member = await self._resolve_member(guild_id, birthday)
            if member is not None:
                celebrants.append((birthday, member.display_name))

        if not celebrants:
            logger.info("[BIRTHDAY TASKS] No birthdays today among members of guild %s", guild_id)
            return False

        message = compose_birthday_message(celebrants, config, today)
        await self.platform.send_message(config.channel_id, message)
        logger.info(
            "[BIRTHDAY TASKS] Announced %d birthday(s) in guild %s",
            len(celebrants), guild_id,
        )
        return True

    async def run_birthday_role_sync(
        self,
        guild_id: GuildID,
        birthday_user_ids: Optional[Set[int]] = None,
    ) -> RoleSyncResult:
        """
        Give the guild's birthday role to members celebrating today and take
        it from everyone else who still has it.

        A failure on one member is logged and the sync moves on to the next.

        Args:
            guild_id: Guild to synchronise.
            birthday_user_ids: Ids of today's birthdays, when the caller
                already loaded them.
        """
        result = RoleSyncResult()
        role_id = await self.database.get_birthday_role(guild_id)
        if role_id is None:
            logger.info("[BIRTHDAY TASKS] Guild %s has no birthday role configured", guild_id)
            return result

        if birthday_user_ids is None:
            birthday_user_ids = await self._todays_birthday_user_ids()

        members = await self.platform.fetch_members(guild_id)
        for member in members:
            action = determine_role_action(member.id in birthday_user_ids, _has_role(member, role_id))
            if action is RoleAction.NO_ACTION:
                continue
            try:
                if action is RoleAction.ADD:
                    await self.platform.add_role(member, role_id, reason=ROLE_REASON_ADD)
                    result.added += 1
                else:
                    await self.platform.remove_role(member, role_id, reason=ROLE_REASON_REMOVE)
                    result.removed += 1
            except Exception as exc:
                result.failed += 1
                logger.error(
                    "[BIRTHDAY TASKS] Failed to %s birthday role for %s in guild %s: %s",
                    action.value, member.id, guild_id, exc,
                )

        logger.info(
            "[BIRTHDAY TASKS] Role sync for guild %s: +%d -%d (%d failed)",
            guild_id, result.added, result.removed, result.failed,
        )
        return result

    async def run_birthday_role_sync_all(self) -> RoleSyncResult:
        """Role sync for every guild the bot is in; one guild failing does not stop the rest."""
        total = RoleSyncResult()
        birthday_user_ids = await self._todays_birthday_user_ids()
        for guild_id in self.platform.guild_ids():
            try:
                total = total.merge(await self.run_birthday_role_sync(guild_id, birthday_user_ids))
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("[BIRTHDAY TASKS] Role sync failed for guild %s: %s", guild_id, exc)
        return total

    async def _todays_birthday_user_ids(self) -> Set[int]:
        today = self.clock()
        birthdays = await self.database.get_birthdays_on_date(today.month, today.day)
        return {birthday.user_id.to_int() for birthday in birthdays}
