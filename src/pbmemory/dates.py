"""Local calendar day keys (``YYYY-MM-DD``)."""

from __future__ import annotations

import re
from datetime import datetime

from pbmemory.errors import InvalidDayError

DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def local_day_key(now: datetime | None = None) -> str:
    """Day key for ``now`` (naive datetimes are local time)."""
    d = now or datetime.now()
    return d.strftime("%Y-%m-%d")


def is_valid_day(day: str) -> bool:
    return bool(DAY_RE.match(str(day or "")))


def require_day(day: str) -> str:
    """Return ``day`` unchanged, raising InvalidDayError if it is not a day key."""
    if not is_valid_day(day):
        raise InvalidDayError(f"day must be YYYY-MM-DD, got {day!r}")
    return day


def month_of(day: str) -> str:
    return str(day or "")[:7]
