from __future__ import annotations

import re
from typing import Any


MAX_MESSAGE_LENGTH = 2000  # Discord plain message limit
MENTION_RE = re.compile(r"<@!?\d+>")
WHITESPACE_RE = re.compile(r"\s+")


def format_final_message(asked_by: str, question: str, model: str, answer: str) -> str:
    return f"**Asked by:** {asked_by}\n**Question:** {question}\n**Model:** {model}\n**Answer:**\n{answer}"


def strip_mentions(text: str) -> str:
    return MENTION_RE.sub("", text or "").strip()


def split_message(text: str, max_len: int = MAX_MESSAGE_LENGTH) -> list[str]:
    return [text[i:i + max_len] for i in range(0, len(text), max_len)] or [""]


def display_name(user: Any) -> str:
    return getattr(user, "name", None) or str(getattr(user, "id", None) or "unknown")


def mention_of(user: Any) -> str:
    user_id = getattr(user, "id", None)
    return f"<@{user_id}>" if user_id else display_name(user)


def render_transcript_line(message: Any) -> str:
    content = WHITESPACE_RE.sub(" ", message.content or "").strip()
    return f"{display_name(message.author)}: {content}"[:MAX_MESSAGE_LENGTH]
