"""
Standalone slash command deployment.

Logs in with the bot token (no gateway connection), force-refreshes the model
list, publishes the commands and exits. Exit code 1 on any failure.
"""

import asyncio
import logging
import sys

import discord
from discord import app_commands

from relaybot.config.loader import BotConfig, get_config
from relaybot.discord.commands import build_commands, register_commands
from relaybot.discord.handlers import RelayHandlers
from relaybot.llm.models import get_model_choices
from relaybot.main import setup_logging
from relaybot.state import BotState


async def register(config: BotConfig, force_refresh_models: bool = True) -> list[str]:
    state = BotState.from_config(config)
    client = discord.Client(intents=discord.Intents.none(), application_id=config.discord_client_id)
    tree = app_commands.CommandTree(client)
    try:
        async with client:
            await client.login(config.discord_token)
            models = await state.get_models(force_refresh=force_refresh_models)
            cmds = build_commands(RelayHandlers(state), get_model_choices(models))
            scope = await register_commands(tree, cmds, config.discord_guild_id)
            logging.info("Registered models (%s scope): %s", scope, models)
    finally:
        await state.llm.close()
    return models


def main() -> None:
    setup_logging()
    config = get_config()
    try:
        asyncio.run(register(config))
    except Exception:
        logging.exception("Failed to register commands")
        sys.exit(1)


if __name__ == "__main__":
    main()
