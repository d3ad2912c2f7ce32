"""
Birthday collection message.

``/birthday_setup`` posts a message with a single "Set My Birthday" button in
the announcement channel. The button opens a form asking for day, month and
an optional year. The custom id is fixed and the view has no timeout, so the
instance registered at startup answers clicks on messages posted before a
restart.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import discord

from lobbycord.datatypes.discord_datatypes import UserID
from lobbycord.errors import InvalidBirthdayError
from lobbycord.services.birthday_service import parse_birthday_fields
from lobbycord.util.date_utils import format_date_display
from lobbycord.util.format_utils import collection_button_label, format_error, format_success
from lobbycord.util.logger import get_logger

if TYPE_CHECKING:
    from lobbycord.services.birthday_service import BirthdayService

logger = get_logger("birthday_collection")

COLLECT_BIRTHDAY_ID = "collect_birthday"
BIRTHDAY_MODAL_ID = "birthday_modal"


class BirthdayModal(discord.ui.Modal):
    """Day, month and optional year form behind the collection button."""

    def __init__(self, birthdays: "BirthdayService"):
        super().__init__(title="🎂 Set Your Birthday", custom_id=BIRTHDAY_MODAL_ID)
        self.birthdays = birthdays
        self.add_item(discord.ui.InputText(
            label="Day (1-31)", placeholder="e.g., 15", min_length=1, max_length=2, required=True,
        ))
        self.add_item(discord.ui.InputText(
            label="Month (1-12)", placeholder="e.g., 3 for March", min_length=1, max_length=2, required=True,
        ))
        self.add_item(discord.ui.InputText(
            label="Year (optional)", placeholder="e.g., 1995 (optional)", min_length=4, max_length=4, required=False,
        ))

    async def callback(self, interaction: discord.Interaction):
        day_text, month_text, year_text = (child.value or "" for child in self.children)
        try:
            month, day, year = parse_birthday_fields(day_text, month_text, year_text)
            birthday = await self.birthdays.save_birthday(UserID(interaction.user.id), month, day, year)
        except InvalidBirthdayError as exc:
            await interaction.response.send_message(format_error(str(exc)), ephemeral=True)
            return
        except Exception as exc:
            logger.error("[BIRTHDAY COLLECTION] Failed to save birthday of %s: %s", interaction.user.id, exc)
            await interaction.response.send_message(
                format_error("Failed to save your birthday. Please try again later."), ephemeral=True
            )
            return

        date_text = format_date_display(birthday.month, birthday.day)
        if birthday.year is not None:
            date_text = f"{date_text} {birthday.year}"
        await interaction.response.send_message(
            format_success(
                f"Birthday saved!\n\nYour birthday: {date_text}\n\n"
                "This will be used across all servers where this bot is present."
            ),
            ephemeral=True,
        )


class BirthdayCollectionView(discord.ui.View):
    """
    Persistent view holding the collection button.

    Args:
        birthdays: Service the form saves through.
        label: Guild-chosen button text; the default label when None.
    """

    def __init__(self, birthdays: "BirthdayService", label: Optional[str] = None):
        super().__init__(timeout=None)
        self.birthdays = birthdays
        self.collect_button.label = collection_button_label(label)

    @discord.ui.button(
        label="🎂 Set My Birthday",
        style=discord.ButtonStyle.primary,
        custom_id=COLLECT_BIRTHDAY_ID,
    )
    async def collect_button(self, button: discord.ui.Button, interaction: discord.Interaction):
        await interaction.response.send_modal(BirthdayModal(self.birthdays))
