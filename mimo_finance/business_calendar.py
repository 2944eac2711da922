"""
Business Calendar

Buckets instants into Wednesday-to-Tuesday business weeks, optionally after
projecting them onto a named time zone's wall clock.

Week bounds are naive wall-clock datetimes. Week keys use a Jan-1-relative
day count, which is not ISO-8601 week numbering and can disagree with it
around the turn of the year. Keys are stored downstream, so the formula must
stay as is.
"""

from __future__ import annotations

import logging
import math
import re
from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from datetime import timezone as dt_timezone
from functools import lru_cache
from typing import Any
from zoneinfo import ZoneInfo

from mimo_finance.core import parse_instant

logger = logging.getLogger(__name__)

DEFAULT_ANCHOR_DOW = 3  # Wednesday, counting Sunday as 0
WEEK_SPAN = timedelta(days=7)
WEEK_END_OFFSET = WEEK_SPAN - timedelta(milliseconds=1)
YEAR_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True)
class BusinessWeek:
    start: datetime
    end: datetime
    key: str
    timezone: str | None = None
    anchor_dow: int = DEFAULT_ANCHOR_DOW

    def contains(self, value: Any) -> bool:
        moment = wall_clock(value, self.timezone)
        if moment is None:
            return False
        return timedelta(0) <= moment - self.start < WEEK_SPAN

    @property
    def label(self) -> str:
        return week_label(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "start": self.start.isoformat(timespec="milliseconds"),
            "end": self.end.isoformat(timespec="milliseconds"),
            "timezone": self.timezone,
            "label": self.label,
        }


@lru_cache(maxsize=32)
def get_zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def js_weekday(day: date) -> int:
    """Weekday with Sunday as 0 and Saturday as 6."""
    return (day.weekday() + 1) % 7


def wall_clock(value: Any, timezone: str | None = None) -> datetime | None:
    """
    Naive wall-clock reading of an instant.

    Aware instants are projected onto ``timezone`` (or the device-local zone when
    no zone is given). Naive instants are already wall-clock readings.
    """
    moment = parse_instant(value)
    if moment is None:
        return None
    if moment.tzinfo is not None:
        try:
            if timezone:
                moment = moment.astimezone(get_zone(timezone))
            else:
                moment = moment.astimezone()
        except (OverflowError, OSError, ValueError):
            logger.debug("Instant %r cannot be projected onto a wall clock", value)
            return None
        moment = moment.replace(tzinfo=None)
    return moment


def week_key(start: date | datetime) -> str:
    day = start.date() if isinstance(start, datetime) else start
    jan1 = date(day.year, 1, 1)
    diff_days = (day - jan1).days
    number = math.ceil((diff_days + js_weekday(jan1) + 1) / 7)
    return f"{day.year}-W{number:02d}"


def week_containing(
    value: Any,
    timezone: str | None = None,
    anchor_dow: int = DEFAULT_ANCHOR_DOW,
) -> BusinessWeek | None:
    """
    Return the business week holding ``value``, or None when it cannot be parsed.

    >>> week_containing("2024-06-12T10:00:00").key
    '2024-W24'
    """
    moment = wall_clock(value, timezone)
    if moment is None:
        return None
    dow = js_weekday(moment.date())
    offset = dow - anchor_dow if dow >= anchor_dow else dow + (7 - anchor_dow)
    try:
        start = datetime.combine(moment.date() - timedelta(days=offset), time.min)
        end = start + WEEK_END_OFFSET
    except OverflowError:
        logger.debug("Week around %r falls outside the supported date range", value)
        return None
    return BusinessWeek(
        start=start,
        end=end,
        key=week_key(start),
        timezone=timezone,
        anchor_dow=anchor_dow,
    )


def parse_year_month(year_month: str) -> tuple[int, int]:
    match = YEAR_MONTH_RE.match(str(year_month).strip())
    if not match:
        raise ValueError(f"Expected a YYYY-MM month, got {year_month!r}")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Month out of range in {year_month!r}")
    return year, month


def weeks_intersecting_month(
    year_month: str,
    timezone: str | None = None,
    anchor_dow: int = DEFAULT_ANCHOR_DOW,
) -> list[BusinessWeek]:
    """Weeks that start inside the month, ascending. A week spanning two months belongs to its start."""
    year, month = parse_year_month(year_month)
    weeks: dict[str, BusinessWeek] = {}
    for day in range(1, monthrange(year, month)[1] + 1):
        week = week_containing(datetime(year, month, day), timezone, anchor_dow)
        if week is None or week.key in weeks:
            continue
        if week.start.year == year and week.start.month == month:
            weeks[week.key] = week
    return sorted(weeks.values(), key=lambda week: week.start)


def weeks_around(
    center: Any = None,
    before: int = 2,
    after: int = 2,
    timezone: str | None = None,
    anchor_dow: int = DEFAULT_ANCHOR_DOW,
) -> list[BusinessWeek]:
    reference = week_containing(
        center if center is not None else datetime.now(dt_timezone.utc),
        timezone,
        anchor_dow,
    )
    if reference is None:
        return []
    weeks: list[BusinessWeek] = []
    for step in range(-before, after + 1):
        try:
            week = week_containing(reference.start + step * WEEK_SPAN, timezone, anchor_dow)
        except OverflowError:
            continue
        if week is not None:
            weeks.append(week)
    return weeks


def month_key(value: Any, timezone: str | None = None) -> str | None:
    moment = wall_clock(value, timezone)
    if moment is None:
        return None
    return f"{moment.year:04d}-{moment.month:02d}"


def anchor_month_for_range(start: Any, end: Any, timezone: str | None = None) -> str | None:
    """The YYYY-MM holding most days of ``[start, end]``; ties keep the earlier month."""
    first = wall_clock(start, timezone)
    last = wall_clock(end, timezone)
    if first is None or last is None:
        return month_key(first or last)
    first_day, last_day = first.date(), last.date()
    if last_day < first_day:
        return month_key(first)

    counts: dict[str, int] = {}
    for offset in range((last_day - first_day).days + 1):
        day = first_day + timedelta(days=offset)
        key = f"{day.year:04d}-{day.month:02d}"
        counts[key] = counts.get(key, 0) + 1

    best_key, best_count = "", 0
    for key, count in counts.items():
        if count > best_count:
            best_key, best_count = key, count
    return best_key


def is_within(value: Any, start: Any, end: Any, timezone: str | None = None) -> bool:
    moment = wall_clock(value, timezone)
    lower = wall_clock(start, timezone)
    upper = wall_clock(end, timezone)
    if moment is None or lower is None or upper is None:
        return False
    return lower <= moment <= upper


def week_label(week: BusinessWeek) -> str:
    return f"{week.start:%Y-%m-%d} → {week.end:%Y-%m-%d}"
