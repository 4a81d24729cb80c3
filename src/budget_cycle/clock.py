# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

Clock = Callable[[], datetime]

_ONE_DAY = timedelta(days=1)


def utc_now() -> datetime:
    """Default clock: the current time as an aware UTC datetime."""
    return datetime.now(tz=timezone.utc)


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def days_between(start: datetime, end: datetime) -> int:
    """Whole days from ``start`` to ``end``, floored, never negative."""
    delta = as_utc(end) - as_utc(start)
    if delta <= timedelta(0):
        return 0
    return delta // _ONE_DAY
