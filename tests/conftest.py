"""
Pytest configuration and fixtures for Lobbycord tests.
"""

import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from lobbycord.datatypes.discord_datatypes import ChannelID, GuildID, UserID  # noqa: E402
from lobbycord.rooms.lifecycle import RoomLifecycleController  # noqa: E402
from lobbycord.rooms.state_cache import RoomStateCache  # noqa: E402

GUILD = GuildID(1000)
LOBBY = ChannelID(2000)
OWNER = UserID(3000)
CATEGORY = ChannelID(4000)


def make_member(user_id=OWNER, display_name="Alice", roles=()):
    return SimpleNamespace(id=int(user_id), display_name=display_name, roles=list(roles))


@pytest.fixture
def platform():
    """Platform client double with every Discord call mocked."""
    client = MagicMock()
    client.fetch_member = AsyncMock(return_value=make_member())
    client.get_room_layout = AsyncMock(return_value=SimpleNamespace(category_id=None, overwrites={}))
    client.create_owned_room = AsyncMock(return_value=ChannelID(5001))
    client.create_voice_room = AsyncMock(return_value=ChannelID(2001))
    client.move_member = AsyncMock()
    client.room_member_ids = AsyncMock(return_value=[])
    client.room_exists = AsyncMock(return_value=True)
    client.delete_room = AsyncMock(return_value=True)
    client.hide_room = AsyncMock()
    client.apply_owned_layout = AsyncMock()
    client.create_hidden_category = AsyncMock(return_value=CATEGORY)
    client.purge_bot_component_messages = AsyncMock(return_value=0)
    client.rename_room = AsyncMock()
    client.send_message = AsyncMock()
    return client


@pytest.fixture
def database():
    """Database double; every store call succeeds and returns nothing."""
    db = MagicMock()
    for name in (
        "insert_lobby_room", "remove_lobby_room", "insert_temporary_room",
        "remove_temporary_room", "set_room_persistent", "set_room_archived",
        "set_archive_category",
    ):
        setattr(db, name, AsyncMock())
    db.get_all_lobby_rooms = AsyncMock(return_value=[])
    db.get_all_temporary_rooms = AsyncMock(return_value=[])
    db.get_archived_room_for_owner = AsyncMock(return_value=None)
    db.get_archive_category = AsyncMock(return_value=None)
    return db


@pytest.fixture
def prompts():
    sender = MagicMock()
    sender.send_welcome = AsyncMock()
    sender.send_restored = AsyncMock()
    return sender


@pytest.fixture
def controller(platform, database, prompts):
    return RoomLifecycleController(RoomStateCache(), database, platform, prompts)
