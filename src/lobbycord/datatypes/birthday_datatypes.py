"""Birthday records and per-guild birthday notification settings."""

from __future__ import annotations

from dataclasses import dataclass

from lobbycord.datatypes.discord_datatypes import ChannelID, GuildID, RoleID, UserID


@dataclass(frozen=True)
class Birthday:
    """
    A user's birthday. One per user, shared by every guild.

    Attributes:
        user_id (UserID): Whose birthday this is.
        month (int): 1-12.
        day (int): 1-31, valid for ``month``.
        year (int | None): Birth year when the user chose to share it.
    """
    user_id: UserID
    month: int
    day: int
    year: int | None = None

    def age_on(self, year: int) -> int | None:
        """Age reached during ``year``, or None when the birth year is unknown."""
        if self.year is None:
            return None
        return year - self.year

    def formatted_date(self) -> str:
        """``DD/MM/YYYY`` when the year is known, ``DD/MM`` otherwise."""
        if self.year is not None:
            return f"{self.day:02d}/{self.month:02d}/{self.year}"
        return f"{self.day:02d}/{self.month:02d}"


@dataclass(frozen=True)
class BirthdayChannelConfig:
    """Where and how a guild announces birthdays."""
    guild_id: GuildID
    channel_id: ChannelID
    message_id: int | None = None
    role_id: RoleID | None = None
    custom_message: str | None = None
    custom_message_without_age: str | None = None
    custom_header: str | None = None
    custom_footer: str | None = None
    collection_title: str | None = None
    collection_description: str | None = None
    collection_button_label: str | None = None
