"""
Type-safe wrappers for Discord snowflake identifiers.

Rooms, guilds, users and roles all share the same 64-bit id space, so a bare
``int`` makes it easy to pass a user id where a room id was expected. Each
wrapper compares equal to another wrapper of the same kind with the same value,
and to the plain ``int`` it wraps, so cache lookups keyed by wrappers still
accept raw ids coming from py-cord events.
"""

from __future__ import annotations

from typing import Union

import discord


class Snowflake:
    """
    Base class for Discord identifiers.

    Example:
        >>> ChannelID(123).to_int()
        123
        >>> ChannelID("123") == ChannelID(123)
        True
        >>> ChannelID(123) == UserID(123)
        False
    """

    __slots__ = ("_value",)

    def __init__(self, value: Union[str, int, "Snowflake"]) -> None:
        """
        Args:
            value: The snowflake as an int, a numeric string, or another wrapper.

        Raises:
            ValueError: If the value is not a non-negative integer id.
        """
        if isinstance(value, Snowflake):
            self._value = value._value
        elif isinstance(value, bool):
            raise ValueError(f"Cannot create {type(self).__name__} from bool")
        elif isinstance(value, int):
            self._value = value
        elif isinstance(value, str):
            self._value = int(value.strip())
        else:
            raise ValueError(f"Cannot create {type(self).__name__} from {type(value).__name__}: {value}")

        if self._value < 0:
            raise ValueError(f"{type(self).__name__} cannot be negative: {self._value}")

    @classmethod
    def from_int(cls, value: int):
        return cls(value)

    def to_int(self) -> int:
        """Return the raw integer, as stored in the database and sent to the API."""
        return self._value

    def __int__(self) -> int:
        return self._value

    def __str__(self) -> str:
        return str(self._value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Snowflake):
            return type(self) is type(other) and self._value == other._value
        if isinstance(other, int) and not isinstance(other, bool):
            return self._value == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)


class UserID(Snowflake):
    """Discord user (or guild member) id."""

    __slots__ = ()

    @classmethod
    def from_user(cls, user: Union[discord.Member, discord.User]) -> "UserID":
        return cls(user.id)


class GuildID(Snowflake):
    """Discord guild id."""

    __slots__ = ()

    @classmethod
    def from_guild(cls, guild: discord.Guild) -> "GuildID":
        return cls(guild.id)


class ChannelID(Snowflake):
    """Id of any guild channel: lobbies, temporary rooms, categories, text channels."""

    __slots__ = ()

    @classmethod
    def from_channel(cls, channel: discord.abc.Snowflake) -> "ChannelID":
        return cls(channel.id)


class RoleID(Snowflake):
    """Discord role id."""

    __slots__ = ()

    @classmethod
    def from_role(cls, role: discord.Role) -> "RoleID":
        return cls(role.id)
