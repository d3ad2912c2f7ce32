"""
Control prompt posted inside every temporary room.

The prompt carries two buttons: one opens a rename modal, the other toggles
persistence. Button custom ids are fixed and the view has no timeout, so a
single instance registered with ``bot.add_view`` at startup keeps answering
clicks on prompts posted before a restart.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import discord

from lobbycord.datatypes.discord_datatypes import ChannelID, UserID
from lobbycord.datatypes.room_datatypes import TemporaryRoom
from lobbycord.errors import (
    InvalidRoomNameError,
    NotRoomOwnerError,
    PersistentRoomExistsError,
    RoomNotFoundError,
)
from lobbycord.util.format_utils import MAX_ROOM_NAME_LENGTH, format_error, format_success
from lobbycord.util.logger import get_logger

if TYPE_CHECKING:
    from lobbycord.platform.discord_client import DiscordPlatformClient
    from lobbycord.rooms.lifecycle import RoomLifecycleController

logger = get_logger("room_controls")

CONFIGURE_ROOM_ID = "configure_channel"
TOGGLE_PERSISTENT_ID = "toggle_persistent"
RENAME_MODAL_ID = "channel_config_modal"

NOT_OWNER_MESSAGE = "Only the channel owner can change this channel!"
NOT_TRACKED_MESSAGE = "This is not a temporary channel."
PERSISTENT_EXISTS_MESSAGE = (
    "You already have a persistent channel from this lobby! "
    "Please disable persistence on your other channel first."
)


def build_welcome_text(display_name: str) -> str:
    return (
        f"🎙️ **Welcome to your temporary voice channel, {display_name}!**\n\n"
        "Click **Configure Channel** to rename it, or **Make Persistent** to keep it "
        "around when everyone leaves."
    )


def build_restored_text(display_name: str) -> str:
    return (
        f"🎙️ **Welcome back to your channel, {display_name}!**\n\n"
        "Your persistent channel has been restored from the archive."
    )


def build_persistence_text(is_persistent: bool) -> str:
    if is_persistent:
        return (
            "📌 **Channel is now persistent!**\n\n"
            "It will be archived instead of deleted when everyone leaves, "
            "and restored when you join the lobby again."
        )
    return (
        "🗑️ **Channel is no longer persistent.**\n\n"
        "It will be deleted when everyone leaves."
    )


class RenameRoomModal(discord.ui.Modal):
    """Single-field form for the owner to rename their room."""

    def __init__(self, controller: "RoomLifecycleController"):
        super().__init__(title="Configure Your Channel", custom_id=RENAME_MODAL_ID)
        self.controller = controller
        self.add_item(
            discord.ui.InputText(
                label="Channel Name",
                placeholder="Enter a new name for your channel",
                max_length=MAX_ROOM_NAME_LENGTH,
                required=True,
            )
        )

    async def callback(self, interaction: discord.Interaction):
        name = self.children[0].value or ""
        try:
            applied = await self.controller.rename_room(
                ChannelID(interaction.channel_id), UserID(interaction.user.id), name
            )
        except NotRoomOwnerError:
            await interaction.response.send_message(format_error(NOT_OWNER_MESSAGE), ephemeral=True)
            return
        except RoomNotFoundError:
            await interaction.response.send_message(format_error(NOT_TRACKED_MESSAGE), ephemeral=True)
            return
        except InvalidRoomNameError as exc:
            await interaction.response.send_message(format_error(str(exc)), ephemeral=True)
            return
        except discord.HTTPException as exc:
            logger.warning("[ROOM CONTROLS] Rename of %s failed: %s", interaction.channel_id, exc)
            await interaction.response.send_message(format_error("Failed to rename the channel."), ephemeral=True)
            return

        await interaction.response.send_message(format_success(f"Channel renamed to **{applied}**"), ephemeral=True)


class RoomControlsView(discord.ui.View):
    """
    Persistent view with the room's configure and persistence buttons.

    Args:
        controller: Lifecycle controller the buttons act on.
        is_persistent: Current persistence of the room; only changes the
            toggle button's label and colour.
    """

    def __init__(self, controller: "RoomLifecycleController", is_persistent: bool = False):
        super().__init__(timeout=None)
        self.controller = controller
        self._show_persistence(is_persistent)

    def _show_persistence(self, is_persistent: bool) -> None:
        if is_persistent:
            self.toggle_button.label = "📌 Remove Persistent"
            self.toggle_button.style = discord.ButtonStyle.secondary
        else:
            self.toggle_button.label = "📌 Make Persistent"
            self.toggle_button.style = discord.ButtonStyle.success

    @discord.ui.button(
        label="⚙️ Configure Channel",
        style=discord.ButtonStyle.primary,
        custom_id=CONFIGURE_ROOM_ID,
        row=0,
    )
    async def configure_button(self, button: discord.ui.Button, interaction: discord.Interaction):
        if not self.controller.cache.is_temporary_room(interaction.channel_id):
            await interaction.response.send_message(format_error(NOT_TRACKED_MESSAGE), ephemeral=True)
            return
        if not self.controller.cache.is_room_owner(interaction.channel_id, interaction.user.id):
            await interaction.response.send_message(format_error(NOT_OWNER_MESSAGE), ephemeral=True)
            return
        await interaction.response.send_modal(RenameRoomModal(self.controller))

    @discord.ui.button(
        label="📌 Make Persistent",
        style=discord.ButtonStyle.success,
        custom_id=TOGGLE_PERSISTENT_ID,
        row=0,
    )
    async def toggle_button(self, button: discord.ui.Button, interaction: discord.Interaction):
        try:
            enabled = await self.controller.toggle_persistence(
                ChannelID(interaction.channel_id), UserID(interaction.user.id)
            )
        except NotRoomOwnerError:
            await interaction.response.send_message(
                format_error("Only the channel owner can change persistence settings!"), ephemeral=True
            )
            return
        except RoomNotFoundError:
            await interaction.response.send_message(format_error(NOT_TRACKED_MESSAGE), ephemeral=True)
            return
        except PersistentRoomExistsError:
            await interaction.response.send_message(format_error(PERSISTENT_EXISTS_MESSAGE), ephemeral=True)
            return

        self._show_persistence(enabled)
        await interaction.response.edit_message(content=build_persistence_text(enabled), view=self)


class DiscordRoomPromptSender:
    """Posts :class:`RoomControlsView` prompts into rooms through the platform client."""

    def __init__(self, platform: "DiscordPlatformClient", controller: "RoomLifecycleController") -> None:
        self.platform = platform
        self.controller = controller

    async def send_welcome(self, room: TemporaryRoom, display_name: str) -> None:
        view = RoomControlsView(self.controller, is_persistent=room.is_persistent)
        await self.platform.send_message(room.room_id, build_welcome_text(display_name), view=view)

    async def send_restored(self, room: TemporaryRoom, display_name: str) -> None:
        view = RoomControlsView(self.controller, is_persistent=room.is_persistent)
        await self.platform.send_message(room.room_id, build_restored_text(display_name), view=view)
