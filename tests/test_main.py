from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from lobbycord import main


def test_resolve_base_dir_prefers_environment(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("LOBBYCORD_HOME", str(tmp_path))
    assert main.resolve_base_dir() == tmp_path.resolve()


def test_build_intents_enables_voice_and_members():
    intents = main.build_intents()
    assert intents.voice_states and intents.members and intents.guilds


def test_load_environment_exits_without_token(monkeypatch):
    monkeypatch.setattr(main, "load_dotenv", lambda **kwargs: None)
    monkeypatch.delenv("DISCORD_BOT_TOKEN", raising=False)
    with pytest.raises(SystemExit):
        main.load_environment()


def test_load_environment_returns_token(monkeypatch):
    monkeypatch.setattr(main, "load_dotenv", lambda **kwargs: None)
    monkeypatch.setenv("DISCORD_BOT_TOKEN", "secret")
    assert main.load_environment() == "secret"


@pytest.mark.asyncio
async def test_shutdown_runtime_stops_everything():
    state = SimpleNamespace(engine=SimpleNamespace(shutdown=AsyncMock()), reload_signal=MagicMock())
    bot = MagicMock()
    bot.is_closed = MagicMock(return_value=False)
    bot.close = AsyncMock()
    database = SimpleNamespace(shutdown=AsyncMock())

    await main.shutdown_runtime(bot, state, database)

    state.engine.shutdown.assert_awaited_once()
    state.reload_signal.close.assert_called_once()
    bot.close.assert_awaited_once()
    database.shutdown.assert_awaited_once()


@pytest.mark.asyncio
async def test_async_main_fails_when_database_does_not_open(monkeypatch):
    monkeypatch.setattr(main, "load_environment", lambda: "token")
    fake_db = SimpleNamespace(initialize=AsyncMock(return_value=False))
    monkeypatch.setattr(main, "Database", lambda: fake_db)

    assert await main.async_main() == 1
