from __future__ import annotations

from dataclasses import dataclass
import logging
import os
import sys
from typing import Any, Mapping

from dotenv import load_dotenv
import yaml

from relaybot.llm.models import DEFAULT_FALLBACK_MODELS
from .validator import validate_config, ConfigValidationError


DEFAULT_CONFIG_FILE = "config.yaml"
CONFIG_ENV_VAR = "CONFIG_PATH"
DEFAULT_MODEL = "asi1-mini"
DEFAULT_FREE_MODEL = "asi1-mini"
DEFAULT_MODELS_CACHE_FILE = ".models-cache.json"
DEFAULT_HEALTH_FILE = ".bot-ready"

# YAML keys that may override built-in defaults. Secrets only come from the environment.
YAML_KEYS = ("free_model", "fallback_models", "models_cache_file", "health_file", "status_message", "llm_default_model")


@dataclass(frozen=True)
class BotConfig:
    discord_token: str
    discord_client_id: int
    discord_guild_id: int
    llm_api_key: str
    llm_api_base: str
    llm_default_model: str = DEFAULT_MODEL
    free_model: str = DEFAULT_FREE_MODEL
    fallback_models: tuple[str, ...] = DEFAULT_FALLBACK_MODELS
    models_cache_file: str = DEFAULT_MODELS_CACHE_FILE
    health_file: str = DEFAULT_HEALTH_FILE
    status_message: str = ""


def get_config_path() -> str:
    """
    Resolve the config path, preferring an explicit environment override.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return env_path
    return DEFAULT_CONFIG_FILE


def _get_env(environ: Mapping[str, str], name: str) -> str | None:
    value = environ.get(name)
    if value and value.strip():
        return value.strip()
    return None


def _load_yaml_settings(cfg_path: str) -> dict[str, Any]:
    try:
        with open(cfg_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logging.debug("No settings file at %s, using defaults", cfg_path)
        return {}
    except yaml.YAMLError as e:
        logging.error("YAML parsing error in %s: %s", cfg_path, e)
        sys.exit(1)

    if not isinstance(data, dict):
        logging.error("Config root must be a mapping, got %s", type(data).__name__)
        sys.exit(1)

    unknown = sorted(str(k) for k in set(data) - set(YAML_KEYS))
    if unknown:
        logging.warning("Ignoring unknown settings in %s: %s", cfg_path, ", ".join(unknown))
    return {k: data[k] for k in YAML_KEYS if k in data}


def _load_raw_config(cfg_path: str, environ: Mapping[str, str]) -> dict[str, Any]:
    raw = _load_yaml_settings(cfg_path)
    raw.update(
        discord_token=_get_env(environ, "DISCORD_BOT_TOKEN"),
        discord_client_id=_get_env(environ, "DISCORD_CLIENT_ID"),
        discord_guild_id=_get_env(environ, "DISCORD_GUILD_ID"),
        llm_api_key=_get_env(environ, "LLM_API_KEY"),
        llm_api_base=_get_env(environ, "LLM_API_BASE"),
    )
    if default_model := _get_env(environ, "LLM_DEFAULT_MODEL"):
        raw["llm_default_model"] = default_model
    return raw


def get_config(path: str | None = None, environ: Mapping[str, str] | None = None) -> BotConfig:
    """
    Public helper for loading configuration.

    - Loads `.env` into the process environment when reading os.environ.
    - Respects CONFIG_PATH for the optional YAML settings file.
    - Exits with error code 1 if any required value is missing or invalid.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ
    cfg_path = path or get_config_path()
    raw = _load_raw_config(cfg_path, environ)

    try:
        validate_config(raw, cfg_path)
    except ConfigValidationError:
        sys.exit(1)

    config = BotConfig(
        discord_token=raw["discord_token"],
        discord_client_id=int(raw["discord_client_id"]),
        discord_guild_id=int(raw["discord_guild_id"]),
        llm_api_key=raw["llm_api_key"],
        llm_api_base=raw["llm_api_base"],
        llm_default_model=raw.get("llm_default_model", DEFAULT_MODEL),
        free_model=raw.get("free_model", DEFAULT_FREE_MODEL),
        fallback_models=tuple(raw.get("fallback_models", DEFAULT_FALLBACK_MODELS)),
        models_cache_file=raw.get("models_cache_file", DEFAULT_MODELS_CACHE_FILE),
        health_file=raw.get("health_file", DEFAULT_HEALTH_FILE),
        status_message=raw.get("status_message", ""),
    )
    logging.info("✓ All required environment variables loaded successfully")
    return config
