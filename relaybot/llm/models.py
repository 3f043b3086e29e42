"""
relaybot/llm/models.py

Resolves the list of selectable model ids.

Lookup order (unless force_refresh): memory cache -> disk cache -> `GET {api_base}/models`
-> hardcoded fallback list. The result is never empty.
"""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
from pathlib import Path
from typing import Any, Sequence

import httpx
from discord import app_commands


DEFAULT_FALLBACK_MODELS: tuple[str, ...] = (
    "asi1-mini",
    "google/gemma-3-27b-it",
    "openai/gpt-oss-20b",
    "meta-llama/llama-3.3-70b-instruct",
    "mistralai/mistral-nemo",
    "qwen/qwen3-32b",
    "z-ai/glm-4.5-air",
)
MAX_CHOICES = 25  # Discord limit per option
MAX_CHOICE_NAME_LENGTH = 100
FETCH_TIMEOUT_SECONDS = 30


def extract_model_ids(payload: Any) -> list[str]:
    """Pull model ids out of an OpenAI-style `{"data": [...]}` body or a bare list."""
    entries = payload.get("data", payload) if isinstance(payload, dict) else payload
    if not isinstance(entries, list):
        raise ValueError(f"Unexpected /models payload type: {type(entries).__name__}")

    ids = []
    for entry in entries:
        if isinstance(entry, dict):
            model_id = entry.get("id") or entry.get("name")
        else:
            model_id = entry
        if model_id:
            ids.append(str(model_id))
    return ids


def get_model_choices(models: Sequence[str]) -> list[app_commands.Choice[str]]:
    """
    Convert model ids to slash command choices, keeping order and the first 25 entries.
    Ids longer than Discord's 100-character choice limit are skipped.
    """
    usable = []
    for m in models:
        if len(m) > MAX_CHOICE_NAME_LENGTH:
            logging.warning("Skipping model id longer than %d characters: %s…", MAX_CHOICE_NAME_LENGTH, m[:40])
            continue
        usable.append(m)
    if len(usable) > MAX_CHOICES:
        logging.warning("Model list truncated from %d to %d (Discord limit)", len(usable), MAX_CHOICES)
    return [app_commands.Choice(name=m, value=m) for m in usable[:MAX_CHOICES]]


class ModelRegistry:
    def __init__(
        self,
        cache_file: str | Path = ".models-cache.json",
        fallback_models: Sequence[str] = DEFAULT_FALLBACK_MODELS,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.cache_file = Path(cache_file)
        self.fallback_models = list(fallback_models) or list(DEFAULT_FALLBACK_MODELS)
        self.http_client = http_client
        self._cached: list[str] | None = None

    # ── Remote ──────────────────────────────────────────────────────────────

    async def fetch_models_from_api(self, api_base: str, api_key: str) -> list[str]:
        url = api_base.rstrip("/") + "/models"
        headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}

        if self.http_client is not None:
            response = await self.http_client.get(url, headers=headers, timeout=FETCH_TIMEOUT_SECONDS)
        else:
            async with httpx.AsyncClient() as client:
                response = await client.get(url, headers=headers, timeout=FETCH_TIMEOUT_SECONDS)
        response.raise_for_status()
        return extract_model_ids(response.json())

    # ── Disk cache ──────────────────────────────────────────────────────────

    def load_models_from_cache(self) -> list[str] | None:
        """Return cached models, or None on any miss (absent, malformed or empty file)."""
        try:
            data = json.loads(self.cache_file.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logging.warning("Failed to load models cache %s: %s", self.cache_file, e)
            return None

        models = data.get("models") if isinstance(data, dict) else None
        if isinstance(models, list) and models:
            logging.info("Loaded %d models from cache", len(models))
            return [str(m) for m in models]
        return None

    def save_models_to_cache(self, models: Sequence[str]) -> None:
        data = {"models": list(models), "updatedAt": datetime.now(timezone.utc).isoformat()}
        try:
            self.cache_file.write_text(json.dumps(data, indent=2), encoding="utf-8")
            logging.info("Saved %d models to cache", len(models))
        except OSError as e:
            logging.warning("Failed to save models cache %s: %s", self.cache_file, e)

    # ── Resolution ──────────────────────────────────────────────────────────

    async def get_available_models(self, api_base: str, api_key: str, force_refresh: bool = False) -> list[str]:
        if self._cached and not force_refresh:
            return self._cached

        if not force_refresh:
            if file_cached := self.load_models_from_cache():
                self._cached = file_cached
                return file_cached

        try:
            logging.info("Fetching models from API...")
            models = await self.fetch_models_from_api(api_base, api_key)
            if models:
                self._cached = models
                self.save_models_to_cache(models)
                logging.info("Fetched %d models from API: %s", len(models), models)
                return models
            logging.warning("Model API returned an empty list")
        except (httpx.HTTPError, ValueError) as e:
            logging.error("Failed to fetch models from API: %s", e)

        logging.warning("Using fallback model list")
        self._cached = list(self.fallback_models)
        return self._cached

    def clear_cache(self) -> None:
        self._cached = None
