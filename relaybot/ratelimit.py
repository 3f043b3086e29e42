from __future__ import annotations

from dataclasses import dataclass
import logging
import math
import time


RATE_LIMIT_SECONDS = 20
MAX_TRACKED_USERS = 10_000


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0

    @property
    def message(self) -> str | None:
        if self.allowed:
            return None
        plural = "s" if self.retry_after != 1 else ""
        return f"⏱️ Please wait {self.retry_after} more second{plural} before using the bot again."


class RateLimiter:
    """
    Per-user cooldown shared by every command and mention.

    `check` reads and records in one synchronous step, so two requests from the
    same user on one event loop can never both pass inside the window.
    """

    def __init__(self, cooldown_seconds: float = RATE_LIMIT_SECONDS, max_entries: int = MAX_TRACKED_USERS):
        self.cooldown_seconds = cooldown_seconds
        self.max_entries = max_entries
        self._last_request: dict[int, float] = {}

    def __len__(self) -> int:
        return len(self._last_request)

    def check(self, user_id: int, now: float | None = None) -> RateLimitDecision:
        now = time.time() if now is None else now
        last = self._last_request.get(user_id)
        if last is not None:
            elapsed = now - last
            if elapsed < self.cooldown_seconds:
                return RateLimitDecision(allowed=False, retry_after=math.ceil(self.cooldown_seconds - elapsed))

        if last is None and len(self._last_request) >= self.max_entries:
            self._evict_oldest(now)
        # Re-insert so the dict stays ordered by last request time.
        self._last_request.pop(user_id, None)
        self._last_request[user_id] = now
        return RateLimitDecision(allowed=True)

    def _evict_oldest(self, now: float) -> None:
        """Make room for one new user, dropping expired entries from the front first."""
        evicted = 0
        while self._last_request:
            uid, ts = next(iter(self._last_request.items()))
            if now - ts < self.cooldown_seconds and len(self._last_request) < self.max_entries:
                break
            del self._last_request[uid]
            evicted += 1
        if evicted:
            logging.debug("Rate limiter at capacity, evicted %d entries", evicted)

    def prune(self, now: float | None = None) -> int:
        """Drop entries whose cooldown has expired. Returns the number removed."""
        now = time.time() if now is None else now
        stale = [uid for uid, ts in self._last_request.items() if now - ts >= self.cooldown_seconds]
        for uid in stale:
            del self._last_request[uid]
        if stale:
            logging.debug("Rate limiter pruned %d stale entries", len(stale))
        return len(stale)
