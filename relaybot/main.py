"""
Bot entrypoint: wires Discord events to the relay handlers.

Run with `python -m relaybot.main` (or the `relaybot` console script).
"""

import asyncio
import logging
import os
import sys

from apscheduler.schedulers.asyncio import AsyncIOScheduler
import discord
from discord.ext import commands

from relaybot.config.loader import BotConfig, get_config
from relaybot.discord.commands import build_commands, register_commands
from relaybot.discord.errors import handle_app_command_error
from relaybot.discord.handlers import RelayHandlers, run_handler
from relaybot.health import schedule_heartbeat
from relaybot.llm.models import get_model_choices
from relaybot.state import BotState

RATE_LIMIT_PRUNE_SECONDS = 300
DEFAULT_STATUS_MESSAGE = "Mention me or use /ask"


def setup_logging() -> None:
    if os.environ.get("DEBUG"):
        logging.basicConfig(level=logging.DEBUG)
        logging.getLogger("httpx").setLevel(logging.DEBUG)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s: %(message)s")


def create_bot(config: BotConfig, state: BotState | None = None) -> commands.Bot:
    state = state or BotState.from_config(config)

    intents = discord.Intents.default()
    intents.message_content = True
    activity = discord.CustomActivity(name=(config.status_message or DEFAULT_STATUS_MESSAGE)[:128])
    discord_bot = commands.Bot(
        intents=intents, activity=activity, command_prefix=None, application_id=config.discord_client_id
    )
    scheduler = AsyncIOScheduler()

    async def sync_commands(models: list[str]) -> None:
        cmds = build_commands(handlers, get_model_choices(models))
        await register_commands(discord_bot.tree, cmds, config.discord_guild_id)

    handlers = RelayHandlers(state, on_models_refreshed=sync_commands)

    # ── Startup ──────────────────────────────────────────────────────────────

    @discord_bot.event
    async def setup_hook() -> None:
        # Registration errors propagate out of start() and end the process.
        models = await state.get_models()
        await sync_commands(models)

    @discord_bot.event
    async def on_ready() -> None:
        logging.info(f"Bot logged in as {discord_bot.user}")
        if not scheduler.running:
            scheduler.start()
            schedule_heartbeat(scheduler, config.health_file)
            scheduler.add_job(
                state.rate_limiter.prune, "interval", seconds=RATE_LIMIT_PRUNE_SECONDS,
                id="rate_limit_prune", replace_existing=True,
            )
            logging.info("Scheduler started")

    # ── Events ───────────────────────────────────────────────────────────────

    @discord_bot.tree.error
    async def on_app_command_error(interaction: discord.Interaction, error: Exception) -> None:
        await handle_app_command_error(interaction, error)

    @discord_bot.event
    async def on_message(new_msg: discord.Message) -> None:
        await run_handler("mention", handlers.on_mention(new_msg, discord_bot.user))

    discord_bot.relay_state = state
    discord_bot.relay_scheduler = scheduler
    return discord_bot


async def run_bot(config: BotConfig) -> None:
    discord_bot = create_bot(config)
    try:
        async with discord_bot:
            await discord_bot.start(config.discord_token)
    finally:
        if discord_bot.relay_scheduler.running:
            discord_bot.relay_scheduler.shutdown(wait=False)
        await discord_bot.relay_state.llm.close()


def main() -> None:
    setup_logging()
    config = get_config()
    logging.info(f"🚀 Bot starting | guild: {config.discord_guild_id} | default model: {config.llm_default_model}")
    try:
        asyncio.run(run_bot(config))
    except KeyboardInterrupt:
        pass
    except discord.LoginFailure:
        logging.critical("Failed to log in. Please check DISCORD_BOT_TOKEN.")
        sys.exit(1)
    except Exception:
        logging.critical("Bot stopped after an unrecoverable error", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
