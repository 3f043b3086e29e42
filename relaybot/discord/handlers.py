"""
Slash command and mention handlers.

Each handler walks one request through: guild/permission checks -> rate limit ->
acknowledgement -> LLM call -> delivery, and returns a HandlerResult instead of
letting failures disappear inside Discord's event dispatch.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence

import discord

from relaybot.llm.errors import parse_error_message
from relaybot.llm.models import MAX_CHOICES
from relaybot.state import BotState
from .delivery import DeliveryOutcome, channel_strategy, deliver, dm_strategy, in_place_strategy
from .formatting import format_final_message, mention_of, render_transcript_line, strip_mentions


ASK_SYSTEM_PROMPT = "You are a helpful assistant answering concisely."
SUMMARIZE_SYSTEM_PROMPT = "You are a helpful assistant that summarizes discussions clearly and concisely."
SUMMARIZE_INSTRUCTIONS = (
    "Summarize the following Discord channel conversation succinctly with bullet points and key decisions.\n"
    "Then provide 3 action items if applicable. Keep it under 200 words."
)

GUILD_ONLY_MESSAGE = "This bot only works in servers, not in DMs."
ADMIN_ONLY_MESSAGE = "Only administrators can use this command."
ASK_FAILURE_MESSAGE = "Sorry, something went wrong while fetching the answer."
SUMMARIZE_FAILURE_MESSAGE = "Sorry, I could not summarize this channel."
REFRESH_FAILURE_MESSAGE = "Sorry, I could not refresh the model list."
NOTHING_TO_SUMMARIZE_MESSAGE = "No readable messages found to summarize."
DM_NOTICE = "I do not have permission to post in that channel. I have sent you a DM instead."
SUMMARY_DM_NOTICE = "I DMed you the summary (no permission to post here)."
EMPTY_MENTION_MESSAGE = (
    "I can't read the question text. Please include your question after the mention, "
    "or enable Message Content Intent for the bot."
)
THINKING_MESSAGE = "Thinking…"

SUMMARIZE_DEFAULT_LIMIT = 200
SUMMARIZE_MIN_LIMIT = 10
SUMMARIZE_MAX_LIMIT = 1000
HISTORY_BATCH_SIZE = 100  # Discord per-request maximum


class Outcome(str, Enum):
    ANSWERED = "answered"
    REJECTED = "rejected"
    FAILED = "failed"
    IGNORED = "ignored"


@dataclass
class HandlerResult:
    outcome: Outcome
    delivery: Optional[DeliveryOutcome] = None
    error: Optional[BaseException] = None


async def run_handler(name: str, coro: Awaitable[HandlerResult]) -> HandlerResult:
    """
    Await a handler and make sure any escaping exception is logged and returned as a result.
    """
    try:
        result = await coro
    except Exception as e:
        logging.exception("Unhandled error in %s handler", name)
        return HandlerResult(Outcome.FAILED, error=e)
    if result.outcome is Outcome.FAILED:
        logging.warning("%s handler failed: %s", name, parse_error_message(result.error) if result.error else result.delivery)
    else:
        logging.debug("%s handler finished: %s", name, result.outcome.value)
    return result


def is_admin(user: Any) -> bool:
    perms = getattr(user, "guild_permissions", None)
    return bool(perms and perms.administrator)


async def collect_history(channel: Any, limit: int, include_bots: bool = False) -> list[discord.Message]:
    """
    Page backward through `channel` until `limit` usable messages are collected or history runs out.
    Returns them oldest first.
    """
    collected: list[discord.Message] = []
    before = None
    while len(collected) < limit:
        batch_size = min(HISTORY_BATCH_SIZE, limit - len(collected))
        batch = [m async for m in channel.history(limit=batch_size, before=before)]
        if not batch:
            break
        for msg in batch:
            if not include_bots and msg.author.bot:
                continue
            if not (msg.content or "").strip():
                continue
            collected.append(msg)
        if len(batch) < batch_size:
            break
        before = batch[-1]

    collected.sort(key=lambda m: m.created_at)
    return collected


def build_summary_prompt(lines: Sequence[str]) -> str:
    return "\n".join([SUMMARIZE_INSTRUCTIONS, "", "\n".join(lines)])


class RelayHandlers:
    def __init__(
        self,
        state: BotState,
        on_models_refreshed: Callable[[list[str]], Awaitable[None]] | None = None,
    ):
        self.state = state
        self.on_models_refreshed = on_models_refreshed

    # ── Interaction helpers ─────────────────────────────────────────────────

    @staticmethod
    async def _reply_ephemeral(interaction: discord.Interaction, content: str) -> None:
        try:
            await interaction.response.send_message(content, ephemeral=True)
        except discord.HTTPException as e:
            logging.warning("Could not reply to interaction: %s", e)

    @staticmethod
    async def _acknowledge(interaction: discord.Interaction) -> None:
        try:
            await interaction.response.defer(ephemeral=True, thinking=True)
        except discord.HTTPException as e:
            logging.warning("Could not acknowledge interaction: %s", e)

    @staticmethod
    async def _edit_ack(interaction: discord.Interaction, content: str) -> None:
        try:
            await interaction.edit_original_response(content=content)
        except discord.HTTPException as e:
            logging.warning("Could not edit interaction response: %s", e)

    async def _precheck(self, interaction: discord.Interaction, admin_only: bool = False, rate_limited: bool = True) -> bool:
        if interaction.guild is None:
            await self._reply_ephemeral(interaction, GUILD_ONLY_MESSAGE)
            return False
        if admin_only and not is_admin(interaction.user):
            await self._reply_ephemeral(interaction, ADMIN_ONLY_MESSAGE)
            return False
        if rate_limited:
            decision = self.state.rate_limiter.check(interaction.user.id)
            if not decision.allowed:
                await self._reply_ephemeral(interaction, decision.message)
                return False
        return True

    async def _deliver_to_interaction(self, interaction: discord.Interaction, final: str, dm_notice: str) -> DeliveryOutcome:
        strategies = []
        if interaction.channel is not None:
            strategies.append(channel_strategy(interaction.channel))
        strategies.append(dm_strategy(interaction.user, notify=lambda: interaction.edit_original_response(content=dm_notice)))
        strategies.append(in_place_strategy(interaction))

        outcome = await deliver(final, strategies)
        if outcome is DeliveryOutcome.CHANNEL:
            try:
                await interaction.delete_original_response()
            except discord.HTTPException as e:
                logging.debug("Could not delete acknowledgement: %s", e)
        return outcome

    def _restriction_blocks(self, user: Any, model: str) -> bool:
        return self.state.model_restriction_enabled and not is_admin(user) and model != self.state.config.free_model

    # ── /ask ────────────────────────────────────────────────────────────────

    async def ask(self, interaction: discord.Interaction, model: str, question: str) -> HandlerResult:
        if not await self._precheck(interaction):
            return HandlerResult(Outcome.REJECTED)

        if self._restriction_blocks(interaction.user, model):
            free_model = self.state.config.free_model
            await self._reply_ephemeral(
                interaction,
                f"Model restriction is enabled. Non-admins can only use **{free_model}**. "
                "Please select that model or contact an administrator.",
            )
            return HandlerResult(Outcome.REJECTED)

        await self._acknowledge(interaction)
        user = interaction.user
        try:
            answer = await self.state.llm.create_chat_completion(
                model=model,
                messages=[
                    {"role": "system", "content": ASK_SYSTEM_PROMPT},
                    {"role": "user", "content": question},
                ],
            )
            logging.info("LLM answer | user=%s model=%s question=%r", user.id, model, question)

            final = format_final_message(asked_by=mention_of(user), question=question, model=model, answer=answer)
            delivery = await self._deliver_to_interaction(interaction, final, DM_NOTICE)
        except Exception as e:
            logging.error("LLM error | user=%s model=%s question=%r: %s", user.id, model, question, parse_error_message(e), exc_info=e)
            await self._edit_ack(interaction, ASK_FAILURE_MESSAGE)
            return HandlerResult(Outcome.FAILED, error=e)

        if delivery is DeliveryOutcome.FAILED:
            return HandlerResult(Outcome.FAILED, delivery=delivery)
        return HandlerResult(Outcome.ANSWERED, delivery=delivery)

    # ── /summarize ──────────────────────────────────────────────────────────

    async def summarize(
        self,
        interaction: discord.Interaction,
        limit: Optional[int] = None,
        include_bots: bool = False,
        model: Optional[str] = None,
    ) -> HandlerResult:
        if not await self._precheck(interaction, admin_only=True):
            return HandlerResult(Outcome.REJECTED)

        limit = max(SUMMARIZE_MIN_LIMIT, min(SUMMARIZE_MAX_LIMIT, limit or SUMMARIZE_DEFAULT_LIMIT))
        model = model or self.state.config.llm_default_model
        user = interaction.user

        await self._acknowledge(interaction)
        try:
            messages = await collect_history(interaction.channel, limit, include_bots)
            lines = [render_transcript_line(m) for m in messages]
            if not lines:
                await self._edit_ack(interaction, NOTHING_TO_SUMMARIZE_MESSAGE)
                return HandlerResult(Outcome.ANSWERED, delivery=DeliveryOutcome.IN_PLACE)

            answer = await self.state.llm.create_chat_completion(
                model=model,
                messages=[
                    {"role": "system", "content": SUMMARIZE_SYSTEM_PROMPT},
                    {"role": "user", "content": build_summary_prompt(lines)},
                ],
            )
            logging.info("Summary | user=%s model=%s messages=%d", user.id, model, len(lines))

            final = format_final_message(
                asked_by=mention_of(user),
                question=f"Summarize last {len(lines)} messages",
                model=model,
                answer=answer,
            )
            delivery = await self._deliver_to_interaction(interaction, final, SUMMARY_DM_NOTICE)
        except Exception as e:
            logging.error("Summarize error | user=%s model=%s: %s", user.id, model, parse_error_message(e), exc_info=e)
            await self._edit_ack(interaction, SUMMARIZE_FAILURE_MESSAGE)
            return HandlerResult(Outcome.FAILED, error=e)

        if delivery is DeliveryOutcome.FAILED:
            return HandlerResult(Outcome.FAILED, delivery=delivery)
        return HandlerResult(Outcome.ANSWERED, delivery=delivery)

    # ── Admin commands ──────────────────────────────────────────────────────

    async def toggle_model_restriction(self, interaction: discord.Interaction) -> HandlerResult:
        if not await self._precheck(interaction, admin_only=True, rate_limited=False):
            return HandlerResult(Outcome.REJECTED)

        enabled = self.state.toggle_model_restriction()
        free_model = self.state.config.free_model
        if enabled:
            message = f"Model restriction **enabled** 🔒\nNon-admins can now only use **{free_model}** (the free model)."
        else:
            message = "Model restriction **disabled** 🔓\nNon-admins can now use all available models."
        await self._reply_ephemeral(interaction, message)
        return HandlerResult(Outcome.ANSWERED)

    async def refresh_models(self, interaction: discord.Interaction) -> HandlerResult:
        if not await self._precheck(interaction, admin_only=True, rate_limited=False):
            return HandlerResult(Outcome.REJECTED)

        await self._acknowledge(interaction)
        try:
            models = await self.state.get_models(force_refresh=True)
            if self.on_models_refreshed is not None:
                await self.on_models_refreshed(models)
        except Exception as e:
            logging.error("Model refresh failed: %s", parse_error_message(e), exc_info=e)
            await self._edit_ack(interaction, REFRESH_FAILURE_MESSAGE)
            return HandlerResult(Outcome.FAILED, error=e)

        message = f"✅ Model list refreshed: {len(models)} model{'s' if len(models) != 1 else ''} available."
        if len(models) > MAX_CHOICES:
            message += f"\n⚠️ Only the first {MAX_CHOICES} are selectable (Discord limit)."
        await self._edit_ack(interaction, message)
        logging.info("Model list refreshed by %s: %d models", interaction.user.id, len(models))
        return HandlerResult(Outcome.ANSWERED, delivery=DeliveryOutcome.IN_PLACE)

    # ── Mentions ────────────────────────────────────────────────────────────

    async def on_mention(self, message: discord.Message, bot_user: Any) -> HandlerResult:
        if message.author.bot or message.guild is None or bot_user is None:
            return HandlerResult(Outcome.IGNORED)
        if not any(u.id == bot_user.id for u in message.mentions):
            return HandlerResult(Outcome.IGNORED)

        question = strip_mentions(message.content)
        if not question:
            await self._reply_quietly(message, EMPTY_MENTION_MESSAGE)
            return HandlerResult(Outcome.REJECTED)

        decision = self.state.rate_limiter.check(message.author.id)
        if not decision.allowed:
            await self._reply_quietly(message, decision.message)
            return HandlerResult(Outcome.REJECTED)

        model = self.state.config.llm_default_model
        thinking = None
        try:
            thinking = await message.channel.send(THINKING_MESSAGE)
        except discord.HTTPException as e:
            logging.debug("Could not post placeholder: %s", e)

        try:
            answer = await self.state.llm.create_chat_completion(
                model=model,
                messages=[
                    {"role": "system", "content": ASK_SYSTEM_PROMPT},
                    {"role": "user", "content": question},
                ],
            )
            logging.info("LLM answer (mention) | user=%s model=%s question=%r", message.author.id, model, question)

            final = format_final_message(asked_by=mention_of(message.author), question=question, model=model, answer=answer)
            await self._delete_quietly(thinking)
            thinking = None
            delivery = await deliver(final, [channel_strategy(message.channel), dm_strategy(message.author)])
        except Exception as e:
            logging.error("LLM error (mention) | user=%s model=%s: %s", message.author.id, model, parse_error_message(e), exc_info=e)
            if thinking is not None:
                try:
                    await thinking.edit(content=ASK_FAILURE_MESSAGE)
                except discord.HTTPException:
                    await self._delete_quietly(thinking)
            else:
                await self._reply_quietly(message, ASK_FAILURE_MESSAGE)
            return HandlerResult(Outcome.FAILED, error=e)

        if delivery is DeliveryOutcome.FAILED:
            return HandlerResult(Outcome.FAILED, delivery=delivery)
        return HandlerResult(Outcome.ANSWERED, delivery=delivery)

    @staticmethod
    async def _reply_quietly(message: discord.Message, content: str) -> None:
        try:
            await message.reply(content)
        except discord.HTTPException as e:
            logging.warning("Could not reply to message %s: %s", message.id, e)

    @staticmethod
    async def _delete_quietly(message: discord.Message | None) -> None:
        if message is None:
            return
        try:
            await message.delete()
        except discord.HTTPException as e:
            logging.debug("Could not delete message %s: %s", message.id, e)
