"""
Slash command schema and registration.

Commands are rebuilt whenever the model list changes, because the `model`
option's choices are fixed at definition time.
"""

import logging
from typing import List, Optional, Sequence

import discord
from discord import app_commands

from .errors import is_missing_access
from .handlers import (
    SUMMARIZE_DEFAULT_LIMIT,
    SUMMARIZE_MAX_LIMIT,
    SUMMARIZE_MIN_LIMIT,
    RelayHandlers,
    run_handler,
)


def build_commands(handlers: RelayHandlers, model_choices: Sequence[app_commands.Choice[str]]) -> List[app_commands.Command]:
    choices = list(model_choices)

    @app_commands.command(name="ask", description="Ask a question to a selected LLM model")
    @app_commands.describe(model="Model to use", question="Your question for the model")
    @app_commands.choices(model=choices)
    async def ask(interaction: discord.Interaction, model: str, question: str) -> None:
        await run_handler("ask", handlers.ask(interaction, model, question))

    @app_commands.command(name="summarize", description="Summarize recent messages in this channel")
    @app_commands.describe(
        limit=f"How many recent messages to include ({SUMMARIZE_MIN_LIMIT}-{SUMMARIZE_MAX_LIMIT})",
        include_bots="Include messages from bots",
        model="Model to use (optional)",
    )
    @app_commands.choices(model=choices)
    @app_commands.default_permissions(administrator=True)
    async def summarize(
        interaction: discord.Interaction,
        limit: app_commands.Range[int, SUMMARIZE_MIN_LIMIT, SUMMARIZE_MAX_LIMIT] = SUMMARIZE_DEFAULT_LIMIT,
        include_bots: bool = False,
        model: Optional[str] = None,
    ) -> None:
        await run_handler("summarize", handlers.summarize(interaction, limit, include_bots, model))

    @app_commands.command(name="refresh_models", description="Refresh the available models list from the API (admin only)")
    @app_commands.default_permissions(administrator=True)
    async def refresh_models(interaction: discord.Interaction) -> None:
        await run_handler("refresh_models", handlers.refresh_models(interaction))

    @app_commands.command(
        name="toggle_model_restriction",
        description="Restrict non-admins to the free model, or lift the restriction (admin only)",
    )
    @app_commands.default_permissions(administrator=True)
    async def toggle_model_restriction(interaction: discord.Interaction) -> None:
        await run_handler("toggle_model_restriction", handlers.toggle_model_restriction(interaction))

    return [ask, summarize, refresh_models, toggle_model_restriction]


async def register_commands(tree: app_commands.CommandTree, commands: Sequence[app_commands.Command], guild_id: int) -> str:
    """
    Publish `commands` to the target guild, or globally if the bot lacks access to it.

    Returns the scope used ("guild" or "global"). Any other failure propagates.
    """
    guild = discord.Object(id=guild_id)
    tree.clear_commands(guild=None)
    tree.clear_commands(guild=guild)
    for command in commands:
        tree.add_command(command, guild=guild)

    try:
        synced = await tree.sync(guild=guild)
        logging.info("Slash commands registered for guild %s: %s", guild_id, [c.name for c in synced])
        return "guild"
    except discord.HTTPException as e:
        if not is_missing_access(e):
            raise
        logging.warning("Missing Access for guild registration. Falling back to GLOBAL commands (may take up to 1 hour).")

    tree.clear_commands(guild=guild)
    for command in commands:
        tree.add_command(command)
    synced = await tree.sync()
    logging.info("Global commands registered: %s", [c.name for c in synced])
    return "global"
