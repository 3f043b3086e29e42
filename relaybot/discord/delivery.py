"""
Ordered reply delivery.

A final answer is posted through the first strategy that succeeds:
channel post, then direct message, then an in-place edit of the interaction
acknowledgement. Each strategy decides which failures let the chain continue.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Awaitable, Callable, Sequence

import discord

from .errors import is_permission_error
from .formatting import MAX_MESSAGE_LENGTH, split_message


class DeliveryOutcome(str, Enum):
    CHANNEL = "channel"
    DM = "dm"
    IN_PLACE = "in_place"
    FAILED = "failed"


@dataclass
class DeliveryStrategy:
    outcome: DeliveryOutcome
    send: Callable[[str], Awaitable[None]]
    recoverable: Callable[[BaseException], bool]


def _any_http_error(error: BaseException) -> bool:
    return isinstance(error, discord.HTTPException)


def channel_strategy(channel: discord.abc.Messageable) -> DeliveryStrategy:
    async def send(text: str) -> None:
        for chunk in split_message(text):
            await channel.send(chunk)

    return DeliveryStrategy(DeliveryOutcome.CHANNEL, send, is_permission_error)


def dm_strategy(user: discord.abc.User, notify: Callable[[], Awaitable[None]] | None = None) -> DeliveryStrategy:
    async def send(text: str) -> None:
        for chunk in split_message(text):
            await user.send(chunk)
        if notify is not None:
            try:
                await notify()
            except discord.HTTPException as e:
                logging.warning("Could not confirm DM delivery: %s", e)

    return DeliveryStrategy(DeliveryOutcome.DM, send, _any_http_error)


def in_place_strategy(interaction: discord.Interaction) -> DeliveryStrategy:
    async def send(text: str) -> None:
        await interaction.edit_original_response(content=text[:MAX_MESSAGE_LENGTH])

    return DeliveryStrategy(DeliveryOutcome.IN_PLACE, send, _any_http_error)


async def deliver(text: str, strategies: Sequence[DeliveryStrategy]) -> DeliveryOutcome:
    """
    Try each strategy in order. Unrecoverable errors propagate to the caller.
    """
    for strategy in strategies:
        try:
            await strategy.send(text)
            return strategy.outcome
        except Exception as e:
            if not strategy.recoverable(e):
                raise
            logging.warning("Delivery via %s failed (%s), trying next", strategy.outcome.value, e)
    return DeliveryOutcome.FAILED
