"""
Liveness heartbeat.

The running bot rewrites a file with the current time in milliseconds; an
external health check (`python -m relaybot.health [path]`) treats a missing or
stale file as unhealthy.
"""

from __future__ import annotations

import logging
from pathlib import Path
import sys
import time

from apscheduler.schedulers.asyncio import AsyncIOScheduler


HEARTBEAT_INTERVAL_SECONDS = 30
STALE_AFTER_SECONDS = 60
DEFAULT_HEALTH_FILE = ".bot-ready"


def write_heartbeat(path: str | Path, now: float | None = None) -> None:
    now = time.time() if now is None else now
    try:
        Path(path).write_text(str(int(now * 1000)), encoding="utf-8")
    except OSError as e:
        logging.warning("Failed to write heartbeat %s: %s", path, e)


def is_healthy(path: str | Path, max_age_seconds: float = STALE_AFTER_SECONDS, now: float | None = None) -> bool:
    now = time.time() if now is None else now
    try:
        written_ms = int(Path(path).read_text(encoding="utf-8").strip())
    except (OSError, ValueError):
        return False
    return (now * 1000 - written_ms) <= max_age_seconds * 1000


def schedule_heartbeat(scheduler: AsyncIOScheduler, path: str | Path) -> None:
    write_heartbeat(path)
    scheduler.add_job(
        write_heartbeat, "interval", seconds=HEARTBEAT_INTERVAL_SECONDS,
        id="heartbeat", replace_existing=True, args=[path],
    )
    logging.info("Heartbeat scheduled every %ss -> %s", HEARTBEAT_INTERVAL_SECONDS, path)


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    path = args[0] if args else DEFAULT_HEALTH_FILE
    return 0 if is_healthy(path) else 1


if __name__ == "__main__":
    sys.exit(main())
