"""
relaybot/llm/client.py

Thin async wrapper around an OpenAI-compatible chat completions endpoint.
One request per user question: no streaming, no tools, no retries.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from .errors import LLMError, from_openai_error


def build_openai_client(api_base: str, api_key: str, http_client: httpx.AsyncClient | None = None) -> AsyncOpenAI:
    # max_retries=0: failures surface to the caller on the first attempt
    return AsyncOpenAI(base_url=api_base, api_key=api_key or "sk-no-key-required", max_retries=0, http_client=http_client)


class LLMClient:
    def __init__(self, api_base: str, api_key: str, http_client: httpx.AsyncClient | None = None):
        self.client = build_openai_client(api_base, api_key, http_client)

    async def create_chat_completion(self, model: str, messages: list[dict[str, Any]]) -> str:
        """
        Send `messages` to `model` and return the text of the first choice.

        Raises LLMError (or a subclass) on any network, HTTP or payload failure.
        """
        try:
            response = await self.client.chat.completions.create(model=model, messages=messages)
        except openai.OpenAIError as e:
            raise from_openai_error(e) from e

        choice = response.choices[0] if response.choices else None
        if not choice:
            raise LLMError(f"Model '{model}' returned no completion choices")

        content = choice.message.content or ""
        logging.debug("LLM completion | model=%s finish=%s chars=%d", model, choice.finish_reason, len(content))
        return content

    async def close(self) -> None:
        await self.client.close()
