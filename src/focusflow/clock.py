from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from time import time
from typing import Callable, Optional

Clock = Callable[[], float]

system_clock: Clock = time


def day_key(ts: Optional[float] = None) -> str:
    """Return the local calendar day of epoch seconds ``ts`` as YYYY-MM-DD."""
    moment = datetime.fromtimestamp(ts if ts is not None else time())
    return moment.strftime("%Y-%m-%d")


def parse_day(key: str) -> date:
    return date.fromisoformat(key)


def shift_day(key: str, days: int) -> str:
    return (parse_day(key) + timedelta(days=days)).isoformat()


def utc_now_iso(ts: Optional[float] = None) -> str:
    """Return ``ts`` (or now) as an ISO8601 UTC string without microseconds."""
    moment = datetime.fromtimestamp(ts if ts is not None else time(), tz=timezone.utc)
    return moment.replace(microsecond=0).isoformat()


def fmt_hms(seconds: int) -> str:
    """Format seconds as HH:MM:SS."""
    h = seconds // 3600
    m = (seconds % 3600) // 60
    s = seconds % 60
    return f"{h:02}:{m:02}:{s:02}"
