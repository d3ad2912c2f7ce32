"""
Exception hierarchy for Lobbycord.

Room lifecycle errors are raised to interaction handlers, which turn them into
ephemeral replies. Validation errors reject user or stored input before it
reaches the platform or the store. Platform failures surface as py-cord
``discord.HTTPException`` and store failures as ``aiosqlite.Error``; neither
is wrapped.
"""


class LobbycordError(Exception):
    """Base class for every error raised by Lobbycord itself."""


# -------------------- Room lifecycle --------------------

class RoomLifecycleError(LobbycordError):
    """A room operation was refused or could not be completed."""


class RoomNotFoundError(RoomLifecycleError):
    """The room is not tracked as a temporary room."""

    def __init__(self, room_id) -> None:
        super().__init__(f"Room {room_id} is not a tracked temporary room")
        self.room_id = room_id


class NotRoomOwnerError(RoomLifecycleError):
    """Someone other than the owner tried to change a temporary room."""

    def __init__(self, room_id, user_id) -> None:
        super().__init__(f"User {user_id} does not own room {room_id}")
        self.room_id = room_id
        self.user_id = user_id


class PersistentRoomExistsError(RoomLifecycleError):
    """The owner already keeps a live persistent room for the same lobby."""

    def __init__(self, existing_room_id) -> None:
        super().__init__(f"A persistent room already exists: {existing_room_id}")
        self.existing_room_id = existing_room_id


class LobbyConflictError(RoomLifecycleError):
    """The channel cannot become a lobby (already a lobby or a temporary room)."""


# -------------------- Validation --------------------

class ValidationError(LobbycordError):
    """Input failed validation."""


class InvalidBirthdayError(ValidationError):
    """Birthday date or year is out of range or does not exist."""


class InvalidCronExpressionError(ValidationError):
    """Cron expression could not be parsed."""

    def __init__(self, expression: str, reason: str) -> None:
        super().__init__(f"Invalid cron expression {expression!r}: {reason}")
        self.expression = expression
        self.reason = reason


class InvalidRoomNameError(ValidationError):
    """Requested room name is empty after trimming."""


class InvalidTimezoneError(ValidationError):
    """Timezone name is not a known IANA timezone."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"Invalid timezone {name!r}: {reason}")
        self.name = name
        self.reason = reason


# -------------------- Scheduling --------------------

class ReloadSignalClosed(LobbycordError):
    """The reload signal was closed; no further changes will be published."""
