from pathlib import Path

import pytest
import yaml

from lobbycord.configuration.app_configuration import (
    DEFAULT_ARCHIVE_CATEGORY_NAME,
    DEFAULT_LOBBY_NAME,
    DEFAULT_MESSAGE_SCAN_LIMIT,
    DEFAULT_RETRY_BACKOFF_SECONDS,
    AppConfig,
)


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "app_config.yml"


def test_app_config_reload_parses_yaml(config_path: Path) -> None:
    config_payload = {
        "scheduler": {"retry_backoff_seconds": 15},
        "rooms": {
            "message_scan_limit": 20,
            "archive_category_name": "Archive",
            "default_lobby_name": "Join to create",
            "max_name_length": 50,
        },
    }
    config_path.write_text(yaml.safe_dump(config_payload), encoding="utf-8")

    config = AppConfig(config_path)

    assert config.retry_backoff_seconds == pytest.approx(15.0)
    assert config.message_scan_limit == 20
    assert config.archive_category_name == "Archive"
    assert config.default_lobby_name == "Join to create"
    assert config.max_room_name_length == 50
    assert config.get("rooms")["message_scan_limit"] == 20


def test_app_config_missing_file_returns_defaults(tmp_path: Path) -> None:
    config = AppConfig(tmp_path / "does_not_exist.yml")

    assert config.data == {}
    assert config.retry_backoff_seconds == DEFAULT_RETRY_BACKOFF_SECONDS
    assert config.message_scan_limit == DEFAULT_MESSAGE_SCAN_LIMIT
    assert config.archive_category_name == DEFAULT_ARCHIVE_CATEGORY_NAME
    assert config.default_lobby_name == DEFAULT_LOBBY_NAME


def test_app_config_invalid_values_fall_back(config_path: Path) -> None:
    config_path.write_text(
        yaml.safe_dump({
            "scheduler": {"retry_backoff_seconds": "soon"},
            "rooms": {"message_scan_limit": -5, "archive_category_name": "  ", "max_name_length": 500},
        }),
        encoding="utf-8",
    )

    config = AppConfig(config_path)

    assert config.retry_backoff_seconds == DEFAULT_RETRY_BACKOFF_SECONDS
    assert config.message_scan_limit == DEFAULT_MESSAGE_SCAN_LIMIT
    assert config.archive_category_name == DEFAULT_ARCHIVE_CATEGORY_NAME
    assert config.max_room_name_length == 100


def test_app_config_non_mapping_and_reload(config_path: Path) -> None:
    config_path.write_text("- just\n- a list\n", encoding="utf-8")
    config = AppConfig(config_path)
    assert config.data == {}

    config_path.write_text(yaml.safe_dump({"rooms": {"message_scan_limit": 7}}), encoding="utf-8")
    config.reload()
    assert config.message_scan_limit == 7
