from __future__ import annotations

from dataclasses import dataclass, field
import logging

from relaybot.config.loader import BotConfig
from relaybot.llm.client import LLMClient
from relaybot.llm.models import ModelRegistry
from relaybot.ratelimit import RateLimiter


@dataclass
class BotState:
    """Process-wide mutable state, passed explicitly to every handler."""

    config: BotConfig
    models: ModelRegistry
    llm: LLMClient
    rate_limiter: RateLimiter = field(default_factory=RateLimiter)
    model_restriction_enabled: bool = False

    @classmethod
    def from_config(cls, config: BotConfig) -> BotState:
        return cls(
            config=config,
            models=ModelRegistry(cache_file=config.models_cache_file, fallback_models=config.fallback_models),
            llm=LLMClient(config.llm_api_base, config.llm_api_key),
        )

    def toggle_model_restriction(self) -> bool:
        self.model_restriction_enabled = not self.model_restriction_enabled
        logging.info("Model restriction toggled: %s", "ENABLED" if self.model_restriction_enabled else "DISABLED")
        return self.model_restriction_enabled

    async def get_models(self, force_refresh: bool = False) -> list[str]:
        return await self.models.get_available_models(
            self.config.llm_api_base, self.config.llm_api_key, force_refresh=force_refresh
        )
