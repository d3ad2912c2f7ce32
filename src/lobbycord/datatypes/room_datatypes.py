"""Records describing lobbies and the temporary rooms spawned from them."""

from __future__ import annotations

from dataclasses import dataclass

from lobbycord.datatypes.discord_datatypes import ChannelID, GuildID, UserID


@dataclass(frozen=True)
class LobbyRoom:
    """A voice channel that spawns a temporary room for whoever joins it."""
    room_id: ChannelID
    guild_id: GuildID


@dataclass
class TemporaryRoom:
    """
    A voice room created for one member from a lobby.

    ``owner_id``, ``lobby_room_id`` and ``guild_id`` never change after
    creation. ``is_archived`` only ever becomes True for persistent rooms.
    """
    room_id: ChannelID
    owner_id: UserID
    lobby_room_id: ChannelID
    guild_id: GuildID
    is_persistent: bool = False
    is_archived: bool = False

    def is_owned_by(self, user_id: UserID | int) -> bool:
        return self.owner_id == user_id

    def same_origin(self, owner_id: UserID, guild_id: GuildID, lobby_room_id: ChannelID) -> bool:
        """True when this room belongs to ``owner_id`` and came from the same lobby of the same guild."""
        return (
            self.owner_id == owner_id
            and self.guild_id == guild_id
            and self.lobby_room_id == lobby_room_id
        )


@dataclass(frozen=True)
class ArchiveCategory:
    """Hidden category that holds a guild's archived persistent rooms."""
    guild_id: GuildID
    category_id: ChannelID
