"""
Time helpers shared by logging and the agent history.

Durations use the monotonic clock; step timestamps and log lines use UTC wall time.
"""
from __future__ import annotations

import time
from datetime import datetime, timezone

_PROCESS_START_MONOTONIC = time.monotonic()
_PROCESS_START_WALL = time.time()


def uptime_seconds() -> float:
    """Seconds since this module was imported."""
    return time.monotonic() - _PROCESS_START_MONOTONIC


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def now_utc_iso(ms: bool = True) -> str:
    """ISO-8601 UTC string with a `Z` suffix, e.g. 2026-10-18T12:34:56.789Z."""
    dt = now_utc()
    if ms:
        return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return dt.isoformat().replace("+00:00", "Z")


def process_start_utc_iso() -> str:
    return datetime.fromtimestamp(_PROCESS_START_WALL, tz=timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
