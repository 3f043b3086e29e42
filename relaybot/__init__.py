"""
Top-level package for the LLM relay Discord bot.

This package hosts:
- environment/YAML config loading and validation
- the model registry (API, disk and memory caches)
- slash command registration and event handlers
- the OpenAI-compatible LLM client
- per-user rate limiting and the liveness heartbeat
"""
