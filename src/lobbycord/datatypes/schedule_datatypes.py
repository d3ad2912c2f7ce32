"""Schedules, engine states and birthday role decisions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from lobbycord.datatypes.discord_datatypes import GuildID


class TaskType(str, Enum):
    """Work a schedule triggers. Values are the strings stored in the ``schedules`` table."""
    BIRTHDAY_NOTIFY = "birthday"
    BIRTHDAY_ROLE_SYNC = "birthdayrole"

    @classmethod
    def from_db(cls, value: str) -> "TaskType":
        """Parse a stored task type.

        Raises:
            ValueError: If the value names no known task type.
        """
        return cls(value.strip().lower())


@dataclass(frozen=True)
class Schedule:
    """A cron-driven trigger for one task type, scoped to a guild or global (``guild_id=None``)."""
    id: int
    guild_id: GuildID | None
    task_type: TaskType
    cron_expression: str
    enabled: bool = True

    @property
    def is_global(self) -> bool:
        return self.guild_id is None


@dataclass(frozen=True)
class ScheduledRun:
    """The schedule chosen to fire next and when."""
    schedule: Schedule
    due_at: datetime
    wait_seconds: float


class EngineState(Enum):
    """Phases of the schedule engine loop."""
    LOADING = "loading"
    EMPTY = "empty"
    COMPUTING = "computing"
    WAITING = "waiting"
    RUNNING = "running"


class RoleAction(Enum):
    """What to do with a member's birthday role."""
    ADD = "add"
    REMOVE = "remove"
    NO_ACTION = "no_action"


@dataclass
class RoleSyncResult:
    """Counters reported by one birthday role synchronization."""
    added: int = 0
    removed: int = 0
    failed: int = 0

    def merge(self, other: "RoleSyncResult") -> "RoleSyncResult":
        return RoleSyncResult(
            added=self.added + other.added,
            removed=self.removed + other.removed,
            failed=self.failed + other.failed,
        )


@dataclass(frozen=True)
class GuildDailyTimes:
    """A guild's local announcement time turned into the UTC crons that get stored."""
    timezone_name: str
    notify_cron: str
    role_sync_cron: str
    utc_time: str
