"""
Text builders for user-facing messages.

Room names, birthday announcements and the short success/error strings used
by interaction replies all live here so the cogs and the task runner stay free
of string assembly.
"""

from __future__ import annotations

from typing import Iterable, Optional

from lobbycord.errors import InvalidRoomNameError

DEFAULT_BIRTHDAY_HEADER = "🎉 **Happy Birthday** 🎉\n\nToday we celebrate:"
DEFAULT_BIRTHDAY_FOOTER = "\nEveryone wish them a happy birthday! 🎂🎈"

DEFAULT_COLLECTION_TITLE = "🎉 **Birthday Collection** 🎉"
DEFAULT_COLLECTION_DESCRIPTION = (
    "Click the button below to set your birthday!\n"
    "Your birthday will be celebrated across all servers where this bot is present."
)
DEFAULT_COLLECTION_BUTTON_LABEL = "🎂 Set My Birthday"

MAX_ROOM_NAME_LENGTH = 100


# -------------------- Interaction replies --------------------

def format_error(message: str) -> str:
    return f"❌ {message}"


def format_success(message: str) -> str:
    return f"✅ {message}"


def format_user_mention(user_id) -> str:
    return f"<@{int(user_id)}>"


# -------------------- Room names --------------------

def format_temp_room_name(display_name: str, max_length: int = MAX_ROOM_NAME_LENGTH) -> str:
    """Name of a freshly created temporary room, e.g. ``"Alice's Channel"``.

    Discord rejects channel names above 100 characters, so long display names
    are cut to ``max_length``.
    """
    return f"{display_name}'s Channel"[:max_length]


def sanitize_room_name(name: str, max_length: int = MAX_ROOM_NAME_LENGTH) -> str:
    """Trim an owner-supplied room name and cut it to ``max_length``.

    Raises:
        InvalidRoomNameError: If nothing is left after trimming.
    """
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvalidRoomNameError("Channel name cannot be empty")
    return cleaned[:max_length]


# -------------------- Birthday announcements --------------------

def process_custom_text(text: Optional[str]) -> Optional[str]:
    """Turn the literal two-character ``\\n`` typed in slash command options into newlines."""
    if text is None:
        return None
    return text.replace("\\n", "\n")


def apply_message_template(template: str, user_name: str, mention: str, date: str, age: str) -> str:
    """Fill ``{user}``, ``{mention}``, ``{date}`` and ``{age}`` in a guild's custom line."""
    result = (
        template
        .replace("{user}", user_name)
        .replace("{mention}", mention)
        .replace("{date}", date)
        .replace("{age}", age)
    )
    return process_custom_text(result) or ""


def build_birthday_entry(
    user_name: str,
    mention: str,
    age: Optional[int],
    template_with_age: Optional[str],
    template_without_age: Optional[str],
    date: str,
) -> str:
    """
    Build one line of the announcement.

    Args:
        user_name: Display name of the member.
        mention: Mention string for the member.
        age: Age reached this year, or None when the birth year is unknown.
        template_with_age: Guild template used when ``age`` is known.
        template_without_age: Guild template used when it is not.
        date: Display date, e.g. ``"15 March"``.

    Returns:
        The rendered line. Without a template the line is
        ``"• <mention> (turning N)!"`` or ``"• <mention>!"``.
    """
    if age is not None:
        if template_with_age:
            return apply_message_template(template_with_age, user_name, mention, date, str(age))
        return f"• {mention} (turning {age})!"

    if template_without_age:
        return apply_message_template(template_without_age, user_name, mention, date, "")
    return f"• {mention}!"


def build_combined_message(header: str, entries: Iterable[str], footer: str) -> str:
    body = "\n".join(entries)
    return f"{header}\n{body}\n{footer}"


# -------------------- Birthday collection --------------------

def build_collection_message(title: Optional[str], description: Optional[str]) -> str:
    """Text of the message members click to enter their birthday; guild texts replace the defaults."""
    title = process_custom_text(title) or DEFAULT_COLLECTION_TITLE
    description = process_custom_text(description) or DEFAULT_COLLECTION_DESCRIPTION
    return f"{title}\n\n{description}\n"


def collection_button_label(label: Optional[str]) -> str:
    # Discord caps button labels at 80 characters
    return (process_custom_text(label) or DEFAULT_COLLECTION_BUTTON_LABEL)[:80]
