from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict

import yaml

from lobbycord.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()

DEFAULT_RETRY_BACKOFF_SECONDS = 60.0
DEFAULT_MESSAGE_SCAN_LIMIT = 50
DEFAULT_ARCHIVE_CATEGORY_NAME = "📦 Archived Channels"
DEFAULT_LOBBY_NAME = "➕ Create Voice Channel"
DEFAULT_MAX_ROOM_NAME_LENGTH = 100


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    The mapping from ``./config/app_config.yml`` is cached in memory; the
    typed properties below fall back to built-in defaults when the file,
    the section or the key is missing, or when a value has the wrong type.
    """

    def __init__(self, config_path: Path = CONFIG_PATH) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found, using defaults.", self.config_path)
            return {}
        except (OSError, yaml.YAMLError) as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
            return {}

        if not isinstance(data, dict):
            if data is not None:
                logger.error("[APP CONFIGURATION] Config %s is not a mapping, using defaults.", self.config_path)
            return {}
        return data

    def _section(self, name: str) -> Dict[str, Any]:
        section = self._data.get(name)
        return section if isinstance(section, dict) else {}

    def _number(self, section: str, key: str, default: float, *, minimum: float) -> float:
        value = self._section(section).get(key, default)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < minimum:
            logger.warning(
                "[APP CONFIGURATION] Invalid %s.%s=%r, using %s", section, key, value, default
            )
            return default
        return value

    def _text(self, section: str, key: str, default: str) -> str:
        value = self._section(section).get(key, default)
        if not isinstance(value, str) or not value.strip():
            return default
        return value

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Re-read the YAML file and replace the cached mapping (empty dict on error)."""
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def retry_backoff_seconds(self) -> float:
        """Seconds the schedule engine waits before reloading after a store failure."""
        return float(self._number("scheduler", "retry_backoff_seconds", DEFAULT_RETRY_BACKOFF_SECONDS, minimum=1))

    @property
    def message_scan_limit(self) -> int:
        """How many recent messages a restored room is scanned for stale control prompts."""
        return int(self._number("rooms", "message_scan_limit", DEFAULT_MESSAGE_SCAN_LIMIT, minimum=0))

    @property
    def archive_category_name(self) -> str:
        return self._text("rooms", "archive_category_name", DEFAULT_ARCHIVE_CATEGORY_NAME)

    @property
    def default_lobby_name(self) -> str:
        return self._text("rooms", "default_lobby_name", DEFAULT_LOBBY_NAME)

    @property
    def max_room_name_length(self) -> int:
        value = int(self._number("rooms", "max_name_length", DEFAULT_MAX_ROOM_NAME_LENGTH, minimum=1))
        return min(value, DEFAULT_MAX_ROOM_NAME_LENGTH)
