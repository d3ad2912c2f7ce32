"""
In-memory view of lobbies, temporary rooms and archive categories.

Each map serialises work per key: a read-modify-write on one room holds that
room's lock only, so events for different rooms never wait on each other.
Plain ``get``/``insert``/``remove`` never await and are atomic on the event
loop, so they take no lock. There is no ordering guarantee across keys.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, Generic, Hashable, List, Optional, Tuple, TypeVar

from lobbycord.datatypes.discord_datatypes import ChannelID, GuildID, UserID
from lobbycord.datatypes.room_datatypes import LobbyRoom, TemporaryRoom

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class KeyedStateMap(Generic[K, V]):
    """
    Dict with lazily created per-key ``asyncio.Lock`` objects.

    ``locked(key)`` and ``update(key, fn)`` serialise work on one key. The
    lock is not re-entrant: code running inside ``locked(key)`` must mutate
    the yielded value directly instead of calling ``update`` on the same key.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._items: Dict[K, V] = {}
        self._locks: Dict[K, asyncio.Lock] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)

    def get(self, key: K) -> Optional[V]:
        return self._items.get(key)

    def contains(self, key: K) -> bool:
        return key in self._items

    def insert(self, key: K, value: V) -> None:
        self._items[key] = value

    def remove(self, key: K) -> Optional[V]:
        value = self._items.pop(key, None)
        lock = self._locks.get(key)
        if lock is not None and not lock.locked():
            del self._locks[key]
        return value

    def values(self) -> List[V]:
        """Snapshot of the values; safe to iterate across awaits."""
        return list(self._items.values())

    def items(self) -> List[Tuple[K, V]]:
        return list(self._items.items())

    def clear(self) -> None:
        self._items.clear()
        self._locks = {key: lock for key, lock in self._locks.items() if lock.locked()}

    def _lock_for(self, key: K) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def locked(self, key: K) -> AsyncIterator[Optional[V]]:
        """Hold ``key``'s lock and yield its current value (None when absent)."""
        lock = self._lock_for(key)
        async with lock:
            yield self._items.get(key)
        if key not in self._items and self._locks.get(key) is lock and not lock.locked():
            del self._locks[key]

    async def update(self, key: K, mutate: Callable[[V], Optional[V]]) -> Optional[V]:
        """
        Apply ``mutate`` to the value under ``key``'s lock.

        ``mutate`` may change the value in place and return None, or return a
        replacement. Returns the resulting value, or None when the key is absent
        (``mutate`` is then not called).
        """
        async with self.locked(key) as current:
            if current is None:
                return None
            replacement = mutate(current)
            if replacement is not None:
                self._items[key] = replacement
                return replacement
            return current


class RoomStateCache:
    """The three maps the room lifecycle controller works on."""

    def __init__(self) -> None:
        self.lobby_rooms: KeyedStateMap[ChannelID, LobbyRoom] = KeyedStateMap("lobby_rooms")
        self.temporary_rooms: KeyedStateMap[ChannelID, TemporaryRoom] = KeyedStateMap("temporary_rooms")
        self.archive_categories: KeyedStateMap[GuildID, ChannelID] = KeyedStateMap("archive_categories")

    def is_lobby(self, room_id) -> bool:
        return room_id in self.lobby_rooms

    def is_temporary_room(self, room_id) -> bool:
        return room_id in self.temporary_rooms

    def is_room_owner(self, room_id, user_id) -> bool:
        room = self.temporary_rooms.get(room_id)
        return room is not None and room.is_owned_by(user_id)

    def persistent_rooms_from_same_origin(
        self,
        owner_id: UserID,
        guild_id: GuildID,
        lobby_room_id: ChannelID,
        exclude_room_id: ChannelID | None = None,
    ) -> List[TemporaryRoom]:
        """Persistent rooms of ``owner_id`` spawned by the same lobby, other than ``exclude_room_id``."""
        return [
            room
            for room in self.temporary_rooms.values()
            if room.is_persistent
            and room.room_id != exclude_room_id
            and room.same_origin(owner_id, guild_id, lobby_room_id)
        ]

    def clear(self) -> None:
        self.lobby_rooms.clear()
        self.temporary_rooms.clear()
        self.archive_categories.clear()
