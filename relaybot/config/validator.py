"""
Configuration validator for the merged environment + YAML settings.

Validates required values, id formats, and common misconfigurations.
"""

from __future__ import annotations

import logging
from typing import Any


logger = logging.getLogger(__name__)


REQUIRED_ENV_VARS = {
    "discord_token": "DISCORD_BOT_TOKEN",
    "discord_client_id": "DISCORD_CLIENT_ID",
    "discord_guild_id": "DISCORD_GUILD_ID",
    "llm_api_key": "LLM_API_KEY",
    "llm_api_base": "LLM_API_BASE",
}


class ConfigValidationError(Exception):
    """Raised when config validation fails."""
    pass


def validate_config(cfg: dict[str, Any], config_path: str = "config.yaml") -> None:
    """
    Validate the raw settings mapping built by the loader.

    Raises ConfigValidationError if validation fails.
    Logs detailed error messages before raising.

    Args:
        cfg: Settings mapping (environment values merged over YAML values)
        config_path: Path to the YAML file (for error messages)

    Raises:
        ConfigValidationError: If validation fails
    """
    errors = []
    warnings = []

    # ── Check root structure ────────────────────────────────────────────────
    if not isinstance(cfg, dict):
        errors.append(f"Config root must be a mapping, got {type(cfg).__name__}")
        cfg = {}

    # ── Required environment variables ──────────────────────────────────────
    for key, env_name in REQUIRED_ENV_VARS.items():
        value = cfg.get(key)
        if not isinstance(value, str) or not value.strip():
            errors.append(f"Missing required environment variable: {env_name}")

    # ── Discord snowflakes ──────────────────────────────────────────────────
    for key in ("discord_client_id", "discord_guild_id"):
        value = cfg.get(key)
        if isinstance(value, str) and value.strip() and not value.strip().isdigit():
            errors.append(
                f"{REQUIRED_ENV_VARS[key]} must be a numeric Discord id, got {value!r}"
            )

    # ── LLM endpoint ────────────────────────────────────────────────────────
    api_base = cfg.get("llm_api_base")
    if isinstance(api_base, str) and api_base.strip():
        if not api_base.startswith(("http://", "https://")):
            errors.append(f"LLM_API_BASE must be an http(s) URL, got {api_base!r}")

    for key in ("llm_default_model", "free_model"):
        if key in cfg and (not isinstance(cfg[key], str) or not cfg[key].strip()):
            errors.append(f"'{key}' must be a non-empty string")

    # ── Validate fallback_models ───────────────────────────────────────────
    if "fallback_models" in cfg:
        fallback = cfg["fallback_models"]
        if not isinstance(fallback, list):
            errors.append(
                f"'fallback_models' must be a list, got {type(fallback).__name__}. "
                f"Use: fallback_models:\n  - \"model1\"\n  - \"model2\""
            )
        elif not fallback:
            errors.append("'fallback_models' is empty (must define at least one model)")
        else:
            for i, model_name in enumerate(fallback):
                if not isinstance(model_name, str) or not model_name.strip():
                    errors.append(
                        f"'fallback_models[{i}]' must be a non-empty string, "
                        f"got {model_name!r}"
                    )
            if "free_model" in cfg and cfg["free_model"] not in fallback:
                warnings.append(
                    f"free model '{cfg['free_model']}' is not in 'fallback_models'; "
                    "it will not be selectable if the model API is unreachable"
                )

    # ── File paths ──────────────────────────────────────────────────────────
    for key in ("models_cache_file", "health_file"):
        if key in cfg and (not isinstance(cfg[key], str) or not cfg[key].strip()):
            errors.append(f"'{key}' must be a non-empty path string")

    if "status_message" in cfg and not isinstance(cfg["status_message"], str):
        errors.append(
            f"'status_message' must be a string, got {type(cfg['status_message']).__name__}"
        )

    # ── Log warnings ────────────────────────────────────────────────────────
    for warning in warnings:
        logger.warning("Config warning: %s", warning)

    # ── Log errors and raise if any ─────────────────────────────────────────
    if errors:
        logger.error("=" * 70)
        logger.error("CONFIG VALIDATION FAILED (%s + environment)", config_path)
        logger.error("=" * 70)
        for i, error in enumerate(errors, 1):
            logger.error("[%d] %s", i, error)
        logger.error("=" * 70)
        logger.error("Please fix the errors above and restart the bot.")
        logger.error("=" * 70)
        raise ConfigValidationError(f"Config validation failed with {len(errors)} error(s)")
