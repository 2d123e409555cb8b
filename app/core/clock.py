# app/core/clock.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_past(deadline: datetime | None, now: datetime) -> bool:
    """
    Single expiry predicate shared by the lazy check and the sweeper.
    A deadline equal to `now` is still open.
    """
    if deadline is None:
        return False
    return now > deadline
