from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from lobbycord.cog.commands import birthday_cmds, lobby_cmds
from lobbycord.cog.listener import events_listener, voice_listener
from lobbycord.datatypes.birthday_datatypes import Birthday, BirthdayChannelConfig
from lobbycord.datatypes.discord_datatypes import ChannelID, GuildID, UserID
from lobbycord.datatypes.room_datatypes import LobbyRoom
from lobbycord.datatypes.schedule_datatypes import GuildDailyTimes
from lobbycord.errors import (
    InvalidBirthdayError,
    InvalidCronExpressionError,
    InvalidTimezoneError,
    LobbyConflictError,
)

CONFIG = BirthdayChannelConfig(guild_id=GuildID(1), channel_id=ChannelID(20), message_id=None)
PARIS_TIMES = GuildDailyTimes(
    timezone_name="Europe/Paris", notify_cron="0 30 7 * * *", role_sync_cron="0 0 22 * * *", utc_time="07:30"
)


def _state(**overrides):
    rooms = MagicMock()
    rooms.on_leave = AsyncMock()
    rooms.on_join = AsyncMock()
    rooms.on_channel_deleted = AsyncMock()
    rooms.create_lobby = AsyncMock(return_value=LobbyRoom(room_id=ChannelID(2), guild_id=GuildID(1)))
    rooms.convert_to_lobby = AsyncMock(return_value=LobbyRoom(room_id=ChannelID(3), guild_id=GuildID(1)))
    rooms.remove_lobby = AsyncMock(return_value=True)
    birthdays = MagicMock()
    birthdays.save_birthday = AsyncMock(return_value=Birthday(user_id=UserID(9), month=3, day=15, year=2000))
    birthdays.get_birthday = AsyncMock(return_value=None)
    birthdays.configure_birthdays = AsyncMock(return_value=CONFIG)
    birthdays.disable_birthdays = AsyncMock(return_value=CONFIG)
    birthdays.resolve_daily_times = AsyncMock(return_value=PARIS_TIMES)
    birthdays.get_birthday_channel = AsyncMock(return_value=None)
    birthdays.set_collection_message = AsyncMock(return_value=True)
    birthdays.set_guild_timezone = AsyncMock()
    platform = MagicMock()
    platform.send_message = AsyncMock(return_value=555)
    platform.delete_message = AsyncMock(return_value=True)
    values = dict(rooms=rooms, birthdays=birthdays, platform=platform, engine=MagicMock())
    values.update(overrides)
    return SimpleNamespace(**values)


class Ctx:
    def __init__(self, guild_id=1, **permissions):
        self.guild_id = guild_id
        self.user = SimpleNamespace(id=9, guild_permissions=SimpleNamespace(**permissions))
        self.respond = AsyncMock()
        self.defer = AsyncMock()
        self.send_followup = AsyncMock()

    def reply_text(self, mock=None) -> str:
        mock = mock or self.respond
        return mock.await_args.args[0]


def _voice(channel_id):
    return SimpleNamespace(channel=SimpleNamespace(id=channel_id) if channel_id else None)


@pytest.mark.parametrize(
    "module,cog_class",
    [
        (voice_listener, voice_listener.VoiceListenerCog),
        (events_listener, events_listener.EventsListenerCog),
        (lobby_cmds, lobby_cmds.LobbyCommandsCog),
        (birthday_cmds, birthday_cmds.BirthdayCommandsCog),
    ],
)
def test_setup_adds_cog(module, cog_class):
    captured = {}
    fake_bot = SimpleNamespace(add_cog=lambda cog: captured.setdefault("cog", cog))
    module.setup(fake_bot, _state())
    assert isinstance(captured["cog"], cog_class)


@pytest.mark.asyncio
async def test_voice_switch_is_leave_then_join():
    state = _state()
    calls = []
    state.rooms.on_leave.side_effect = lambda room_id: calls.append(("leave", room_id))
    state.rooms.on_join.side_effect = lambda room_id, user_id, guild_id: calls.append(("join", room_id))
    cog = voice_listener.VoiceListenerCog(SimpleNamespace(), state)
    member = SimpleNamespace(id=9, guild=SimpleNamespace(id=1))

    await cog.on_voice_state_update(member, _voice(10), _voice(20))

    assert calls == [("leave", ChannelID(10)), ("join", ChannelID(20))]


@pytest.mark.asyncio
async def test_voice_same_channel_is_ignored():
    state = _state()
    cog = voice_listener.VoiceListenerCog(SimpleNamespace(), state)
    member = SimpleNamespace(id=9, guild=SimpleNamespace(id=1))

    await cog.on_voice_state_update(member, _voice(10), _voice(10))

    state.rooms.on_leave.assert_not_awaited()
    state.rooms.on_join.assert_not_awaited()


@pytest.mark.asyncio
async def test_voice_leave_failure_still_handles_join():
    state = _state()
    state.rooms.on_leave.side_effect = RuntimeError("boom")
    cog = voice_listener.VoiceListenerCog(SimpleNamespace(), state)
    member = SimpleNamespace(id=9, guild=SimpleNamespace(id=1))

    await cog.on_voice_state_update(member, _voice(10), _voice(20))

    state.rooms.on_join.assert_awaited_once_with(ChannelID(20), UserID(9), GuildID(1))


@pytest.mark.asyncio
async def test_channel_delete_forwards_to_rooms():
    state = _state()
    cog = voice_listener.VoiceListenerCog(SimpleNamespace(), state)

    await cog.on_guild_channel_delete(SimpleNamespace(id=44))

    state.rooms.on_channel_deleted.assert_awaited_once_with(ChannelID(44))


@pytest.mark.asyncio
async def test_on_ready_registers_view_once_and_starts_engine(monkeypatch):
    monkeypatch.setattr(events_listener, "RoomControlsView", lambda controller: SimpleNamespace(controller=controller))
    monkeypatch.setattr(events_listener, "BirthdayCollectionView", lambda birthdays: SimpleNamespace(birthdays=birthdays))
    state = _state()
    bot = SimpleNamespace(user=SimpleNamespace(id=1), add_view=MagicMock(), change_presence=AsyncMock())
    cog = events_listener.EventsListenerCog(bot, state)

    await cog.on_ready()
    await cog.on_ready()

    assert bot.add_view.call_count == 2
    assert state.engine.start.call_count == 2


@pytest.mark.asyncio
async def test_create_lobby_requires_permission():
    state = _state()
    cog = lobby_cmds.LobbyCommandsCog(SimpleNamespace(), state)
    ctx = Ctx(manage_channels=False)

    await lobby_cmds.LobbyCommandsCog.create_lobby.callback(cog, ctx, None)

    assert ctx.reply_text().startswith("❌")
    state.rooms.create_lobby.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_lobby_outside_guild_is_refused():
    state = _state()
    cog = lobby_cmds.LobbyCommandsCog(SimpleNamespace(), state)
    ctx = Ctx(guild_id=None, manage_channels=True)

    await lobby_cmds.LobbyCommandsCog.create_lobby.callback(cog, ctx, None)

    state.rooms.create_lobby.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_lobby_reports_new_channel():
    state = _state()
    cog = lobby_cmds.LobbyCommandsCog(SimpleNamespace(), state)
    ctx = Ctx(manage_channels=True)

    await lobby_cmds.LobbyCommandsCog.create_lobby.callback(cog, ctx, "Games")

    state.rooms.create_lobby.assert_awaited_once_with(GuildID(1), "Games")
    assert "<#2>" in ctx.reply_text(ctx.send_followup)


@pytest.mark.asyncio
async def test_convert_to_lobby_conflict_is_reported():
    state = _state()
    state.rooms.convert_to_lobby.side_effect = LobbyConflictError("This channel is already a lobby")
    cog = lobby_cmds.LobbyCommandsCog(SimpleNamespace(), state)
    ctx = Ctx(manage_channels=True)

    await lobby_cmds.LobbyCommandsCog.convert_to_lobby.callback(cog, ctx, SimpleNamespace(id=3))

    assert ctx.reply_text() == "❌ This channel is already a lobby"


@pytest.mark.asyncio
async def test_birthday_set_rejects_invalid_date():
    state = _state()
    state.birthdays.save_birthday.side_effect = InvalidBirthdayError("February has no day 30")
    cog = birthday_cmds.BirthdayCommandsCog(SimpleNamespace(), state)
    ctx = Ctx()

    await birthday_cmds.BirthdayCommandsCog.birthday_set.callback(cog, ctx, 30, 2, None)

    assert ctx.reply_text() == "❌ February has no day 30"


@pytest.mark.asyncio
async def test_birthday_set_confirms_date():
    state = _state()
    cog = birthday_cmds.BirthdayCommandsCog(SimpleNamespace(), state)
    ctx = Ctx()

    await birthday_cmds.BirthdayCommandsCog.birthday_set.callback(cog, ctx, 15, 3, 2000)

    state.birthdays.save_birthday.assert_awaited_once_with(UserID(9), 3, 15, 2000)
    assert "15 March 2000" in ctx.reply_text()


@pytest.fixture
def plain_collection_view(monkeypatch):
    monkeypatch.setattr(
        birthday_cmds, "BirthdayCollectionView", lambda birthdays, label: SimpleNamespace(label=label)
    )


async def _run_setup(cog, ctx, time="08:30", role=None, button=None):
    await birthday_cmds.BirthdayCommandsCog.birthday_setup.callback(
        cog, ctx, SimpleNamespace(id=20), time, role, None, None, None, None, None, None, button
    )


@pytest.mark.asyncio
async def test_birthday_setup_stores_guild_local_time_as_utc(plain_collection_view):
    state = _state()
    cog = birthday_cmds.BirthdayCommandsCog(SimpleNamespace(), state)
    ctx = Ctx(manage_guild=True)

    await _run_setup(cog, ctx, role=SimpleNamespace(id=7), button="Tell us!")

    state.birthdays.resolve_daily_times.assert_awaited_once_with(GuildID(1), "08:30")
    args = state.birthdays.configure_birthdays.await_args
    assert args.args == (GuildID(1), ChannelID(20), "0 30 7 * * *")
    assert args.kwargs["role_sync_cron"] == "0 0 22 * * *"
    assert args.kwargs["role_id"] == 7
    assert args.kwargs["collection_button_label"] == "Tell us!"
    reply = ctx.reply_text(ctx.send_followup)
    assert "<#20>" in reply and "08:30 Europe/Paris" in reply and "07:30 UTC" in reply


@pytest.mark.asyncio
async def test_birthday_setup_posts_collection_message(plain_collection_view):
    state = _state()
    cog = birthday_cmds.BirthdayCommandsCog(SimpleNamespace(), state)
    ctx = Ctx(manage_guild=True)

    await _run_setup(cog, ctx, button="Tell us!")

    channel_id, content = state.platform.send_message.await_args.args
    assert channel_id == ChannelID(20)
    assert "Birthday Collection" in content
    assert state.platform.send_message.await_args.kwargs["view"].label == "Tell us!"
    state.birthdays.set_collection_message.assert_awaited_once_with(GuildID(1), 555)
    state.platform.delete_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_birthday_setup_replaces_previous_collection_message(plain_collection_view):
    state = _state()
    state.birthdays.get_birthday_channel.return_value = BirthdayChannelConfig(
        guild_id=GuildID(1), channel_id=ChannelID(19), message_id=40
    )
    cog = birthday_cmds.BirthdayCommandsCog(SimpleNamespace(), state)
    ctx = Ctx(manage_guild=True)

    await _run_setup(cog, ctx)

    state.platform.delete_message.assert_awaited_once_with(ChannelID(19), 40)


@pytest.mark.asyncio
async def test_birthday_setup_reports_failed_collection_post(plain_collection_view):
    state = _state()
    state.platform.send_message.side_effect = discord.HTTPException(
        SimpleNamespace(status=403, reason="Forbidden"), "Missing Access"
    )
    cog = birthday_cmds.BirthdayCommandsCog(SimpleNamespace(), state)
    ctx = Ctx(manage_guild=True)

    await _run_setup(cog, ctx)

    state.birthdays.configure_birthdays.assert_awaited_once()
    state.birthdays.set_collection_message.assert_not_awaited()
    assert "⚠️" in ctx.reply_text(ctx.send_followup)


@pytest.mark.asyncio
async def test_birthday_setup_rejects_bad_time(plain_collection_view):
    state = _state()
    state.birthdays.resolve_daily_times.side_effect = InvalidCronExpressionError("25:99", "hour must be 0-23")
    cog = birthday_cmds.BirthdayCommandsCog(SimpleNamespace(), state)
    ctx = Ctx(manage_guild=True)

    await _run_setup(cog, ctx, time="25:99")

    state.birthdays.configure_birthdays.assert_not_awaited()
    assert ctx.reply_text(ctx.send_followup) == "❌ hour must be 0-23"


@pytest.mark.asyncio
async def test_setup_timezone_confirms_zone():
    from zoneinfo import ZoneInfo

    state = _state()
    state.birthdays.set_guild_timezone.return_value = ZoneInfo("Asia/Tokyo")
    cog = birthday_cmds.BirthdayCommandsCog(SimpleNamespace(), state)
    ctx = Ctx(manage_guild=True)

    await birthday_cmds.BirthdayCommandsCog.setup_timezone.callback(cog, ctx, "Asia/Tokyo")

    state.birthdays.set_guild_timezone.assert_awaited_once_with(GuildID(1), "Asia/Tokyo")
    assert "**Asia/Tokyo**" in ctx.reply_text()


@pytest.mark.asyncio
async def test_setup_timezone_rejects_unknown_zone():
    state = _state()
    state.birthdays.set_guild_timezone.side_effect = InvalidTimezoneError("Nowhere", "unknown IANA timezone")
    cog = birthday_cmds.BirthdayCommandsCog(SimpleNamespace(), state)
    ctx = Ctx(manage_guild=True)

    await birthday_cmds.BirthdayCommandsCog.setup_timezone.callback(cog, ctx, "Nowhere")

    assert ctx.reply_text().startswith("❌ Invalid timezone")


@pytest.mark.asyncio
async def test_birthday_disable_removes_collection_message():
    state = _state()
    state.birthdays.disable_birthdays.return_value = BirthdayChannelConfig(
        guild_id=GuildID(1), channel_id=ChannelID(20), message_id=555
    )
    cog = birthday_cmds.BirthdayCommandsCog(SimpleNamespace(), state)
    ctx = Ctx(manage_guild=True)

    await birthday_cmds.BirthdayCommandsCog.birthday_disable.callback(cog, ctx)

    state.birthdays.disable_birthdays.assert_awaited_once_with(GuildID(1))
    state.platform.delete_message.assert_awaited_once_with(ChannelID(20), 555)
    assert ctx.reply_text().startswith("✅")


@pytest.mark.asyncio
async def test_birthday_disable_when_not_configured():
    state = _state()
    state.birthdays.disable_birthdays.return_value = None
    cog = birthday_cmds.BirthdayCommandsCog(SimpleNamespace(), state)
    ctx = Ctx(manage_guild=True)

    await birthday_cmds.BirthdayCommandsCog.birthday_disable.callback(cog, ctx)

    state.platform.delete_message.assert_not_awaited()
    assert ctx.reply_text() == "Birthday announcements were not configured."
