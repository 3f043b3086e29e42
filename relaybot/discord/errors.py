from __future__ import annotations

import logging

import discord

from relaybot.llm.errors import parse_error_message


MISSING_ACCESS = 50001
MISSING_PERMISSIONS = 50013
GENERIC_COMMAND_ERROR = "Sorry, something went wrong while running that command."


def is_missing_access(error: BaseException) -> bool:
    return isinstance(error, discord.HTTPException) and error.code == MISSING_ACCESS


def is_permission_error(error: BaseException) -> bool:
    """
    True when Discord refused an action because the bot lacks access or permissions.
    """
    if isinstance(error, discord.Forbidden):
        return True
    if isinstance(error, discord.HTTPException):
        return error.code in (MISSING_ACCESS, MISSING_PERMISSIONS) or error.status == 403
    return False


async def handle_app_command_error(
    interaction: discord.Interaction,
    error: Exception,
) -> None:
    """
    Standard handler for slash command errors that escaped a handler.
    """
    logging.error(
        "App command error in /%s: %s",
        getattr(interaction.command, "name", "unknown"),
        parse_error_message(error),
        exc_info=error,
    )
    try:
        if not interaction.response.is_done():
            await interaction.response.send_message(GENERIC_COMMAND_ERROR, ephemeral=True)
        else:
            await interaction.followup.send(GENERIC_COMMAND_ERROR, ephemeral=True)
    except discord.HTTPException as e:
        logging.warning("Could not report command error to user: %s", e)
