from __future__ import annotations

import openai


class LLMError(Exception):
    """Base error for LLM-related failures."""


class LLMRateLimitError(LLMError):
    pass


class LLMAuthError(LLMError):
    pass


class LLMNotFoundError(LLMError):
    pass


class LLMForbiddenError(LLMError):
    pass


class LLMConnectionError(LLMError):
    pass


def from_openai_error(error: openai.OpenAIError) -> LLMError:
    """
    Translate an OpenAI SDK exception into the bot's LLMError hierarchy.
    """
    if isinstance(error, openai.RateLimitError):
        return LLMRateLimitError(str(error))
    if isinstance(error, openai.AuthenticationError):
        return LLMAuthError(str(error))
    if isinstance(error, openai.NotFoundError):
        return LLMNotFoundError(str(error))
    if isinstance(error, openai.PermissionDeniedError):
        return LLMForbiddenError(str(error))
    if isinstance(error, openai.APIConnectionError):
        return LLMConnectionError(str(error))
    return LLMError(str(error))


def parse_error_message(error: Exception) -> str:
    """
    Map raw exceptions into short, human-readable messages.
    Used for logs only; end users always get a generic apology.
    """
    s, t = str(error), type(error).__name__
    if isinstance(error, LLMRateLimitError) or "429" in s:
        return "⚠️ Rate Limited: API provider is temporarily rate-limited."
    if isinstance(error, LLMAuthError) or "401" in s or "Unauthorized" in s:
        return "❌ Authentication Error: Invalid API key or credentials."
    if isinstance(error, LLMNotFoundError) or "404" in s:
        return "❌ Not Found: The requested model or resource was not found."
    if isinstance(error, LLMForbiddenError) or "403" in s or t == "Forbidden":
        return "❌ Forbidden: No permission to access this resource."
    if isinstance(error, LLMConnectionError) or "Connection" in t or "ECONNREFUSED" in s or "ETIMEDOUT" in s:
        return "❌ Connection Error: Unable to connect to the API provider."
    return f"❌ {t}: {s.split(chr(10))[0][:100]}"
