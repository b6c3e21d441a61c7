from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from muniscore.config import settings
from muniscore.exceptions import InvalidInputError

_PERIOD_RE = re.compile(r"^(\d{4})-(\d{1,2})$")


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive [start, end] range in the reference calendar."""
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.end < self.start:
            raise InvalidInputError(f"Window end {self.end} is before start {self.start}")

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


def to_reference_time(moment: datetime) -> datetime:
    """
    Normalizes a datetime into the naive reference calendar.
    Naive values are assumed to already be reference-calendar times.
    """
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(ZoneInfo(settings.calendar.timezone)).replace(tzinfo=None)


def reference_now() -> datetime:
    return datetime.now(ZoneInfo(settings.calendar.timezone)).replace(tzinfo=None)


def month_window(year: int, month: int) -> TimeWindow:
    """First day 00:00 through 23:59:59.999 on the last day of the month, inclusive."""
    _validate_period(year, month)
    last_day = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1)
    end = datetime(year, month, last_day) + timedelta(days=1) - timedelta(milliseconds=1)
    return TimeWindow(start=start, end=end)


def overlaps_window(start: datetime, deadline: datetime, window: TimeWindow) -> bool:
    """
    A task belongs to a window when it starts inside it, ends inside it,
    or spans the whole window. Partial overlaps count.
    """
    return (
        window.contains(start)
        or window.contains(deadline)
        or (start <= window.start and deadline >= window.end)
    )


def period_label(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def parse_period(label: Optional[str]) -> Tuple[int, int]:
    """
    Parses a YYYY-MM label into (year, month).
    Raises InvalidInputError for malformed or out-of-range labels.
    """
    match = _PERIOD_RE.match(str(label or "").strip())
    if not match:
        raise InvalidInputError(f"Invalid period label {label!r}; expected YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    _validate_period(year, month)
    return year, month


def current_period(now: Optional[datetime] = None) -> Tuple[int, int]:
    moment = to_reference_time(now) if now else reference_now()
    return moment.year, moment.month


def _validate_period(year: int, month: int) -> None:
    if not 1 <= month <= 12:
        raise InvalidInputError(f"Invalid month {month}; expected 1-12")
    if not settings.calendar.min_year <= year <= settings.calendar.max_year:
        raise InvalidInputError(
            f"Invalid year {year}; expected {settings.calendar.min_year}-{settings.calendar.max_year}"
        )
