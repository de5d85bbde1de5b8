"""Time-accounting engine: pure functions, no database access.

Covers:
- Entry duration in whole minutes (half-up rounding, clamped at 0)
- Interval overlap with open-ended entries extending to a far-future sentinel
- Planned minutes per weekday and the daily effective-minutes formula
- Weekly aggregation against the 38h target and the 4h daily minimum

Day-type credit policy: a day marked smart/ferie/festa is credited its full
planned minutes *in addition to* any logged work and permission minutes. Work
logged on such a day therefore counts twice. This arithmetic is kept as-is.
"""
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable, Optional

FAR_FUTURE = datetime(9999, 12, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)

WEEK_TARGET_MINUTES = 38 * 60
DAILY_MINIMUM_MINUTES = 4 * 60
MAX_PERMISSION_MINUTES = 12 * 60
BUSINESS_DAYS = 5

# Monday = 0, matching date.weekday()
PLANNED_MINUTES_BY_WEEKDAY = {
    0: 8 * 60,
    1: 8 * 60,
    2: 8 * 60,
    3: 8 * 60,
    4: 6 * 60,
}

NO_DAY_TYPE = "none"


def duration_minutes(start: datetime, end: Optional[datetime]) -> Optional[int]:
    """Minutes between start and end, or None while the entry is still open."""
    if end is None:
        return None
    seconds = (end - start).total_seconds()
    if seconds <= 0:
        return 0
    return int(math.floor(seconds / 60 + 0.5))


def effective_end(entry: Any) -> datetime:
    return entry.end_at if entry.end_at is not None else FAR_FUTURE


def overlaps(
    existing: Any,
    candidate_start: datetime,
    candidate_end: datetime,
    exclude_id: Optional[str] = None,
) -> bool:
    """True if ``existing`` intersects the half-open interval [start, end)."""
    if exclude_id is not None and existing.id == exclude_id:
        return False
    return existing.start_at < candidate_end and effective_end(existing) > candidate_start


def find_overlap(
    entries: Iterable[Any],
    candidate_start: datetime,
    candidate_end: datetime,
    exclude_id: Optional[str] = None,
) -> Optional[Any]:
    for entry in entries:
        if overlaps(entry, candidate_start, candidate_end, exclude_id):
            return entry
    return None


def planned_minutes_for_weekday(weekday: int) -> int:
    """Planned minutes for a ``date.weekday()`` value; weekends plan nothing."""
    return PLANNED_MINUTES_BY_WEEKDAY.get(weekday, 0)


def daily_effective_minutes(
    worked_minutes: int,
    day_type: str,
    permission_minutes: int,
    planned_minutes: int,
) -> int:
    credit = 0 if _day_type_value(day_type) == NO_DAY_TYPE else planned_minutes
    return worked_minutes + permission_minutes + credit


def _day_type_value(day_type: Any) -> str:
    return getattr(day_type, "value", day_type)


def local_date(instant: datetime, tz) -> date:
    return instant.astimezone(tz).date()


def local_day_bounds(day: date, tz) -> tuple[datetime, datetime]:
    """UTC instants of local midnight for ``day`` and the following day."""
    start = tz.localize(datetime.combine(day, datetime.min.time()))
    end = tz.localize(datetime.combine(day + timedelta(days=1), datetime.min.time()))
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def group_entries_by_local_date(entries: Iterable[Any], tz) -> dict[date, list[Any]]:
    """Bucket entries by the local date of their start, each bucket sorted by start."""
    grouped: dict[date, list[Any]] = {}
    for entry in entries:
        grouped.setdefault(local_date(entry.start_at, tz), []).append(entry)
    for rows in grouped.values():
        rows.sort(key=lambda e: e.start_at)
    return grouped


def week_start(day: date) -> date:
    return day - timedelta(days=day.weekday())


@dataclass
class DaySummary:
    day_date: date
    weekday: int
    planned_minutes: int
    worked_minutes: int
    day_type: str
    permission_minutes: int
    effective_minutes: int
    entries: list[Any] = field(default_factory=list)


@dataclass
class WeekSummary:
    week_start: date
    week_end: date
    target_minutes: int
    worked_minutes: int
    remaining_minutes: int
    under_minimum_days: int
    days: list[DaySummary] = field(default_factory=list)


def summarize_day(day: date, entries: list[Any], adjustment: Any = None) -> DaySummary:
    planned = planned_minutes_for_weekday(day.weekday())
    worked = sum(e.duration_minutes or 0 for e in entries)
    day_type = _day_type_value(adjustment.day_type) if adjustment is not None else NO_DAY_TYPE
    permission = adjustment.permission_minutes if adjustment is not None else 0
    return DaySummary(
        day_date=day,
        weekday=day.weekday(),
        planned_minutes=planned,
        worked_minutes=worked,
        day_type=day_type,
        permission_minutes=permission,
        effective_minutes=daily_effective_minutes(worked, day_type, permission, planned),
        entries=entries,
    )


def summarize_week(
    monday: date,
    entries: Iterable[Any],
    adjustments: Iterable[Any],
    tz,
) -> WeekSummary:
    """Aggregate the Mon-Fri week starting at ``monday``.

    ``adjustments`` are matched on their ``day_date`` (ISO string); entries are
    bucketed by the local date of their start.
    """
    grouped = group_entries_by_local_date(entries, tz)
    by_day = {a.day_date: a for a in adjustments}

    days = []
    for offset in range(BUSINESS_DAYS):
        day = monday + timedelta(days=offset)
        days.append(summarize_day(day, grouped.get(day, []), by_day.get(day.isoformat())))

    worked = sum(d.effective_minutes for d in days)
    under_minimum = sum(1 for d in days if 0 < d.effective_minutes < DAILY_MINIMUM_MINUTES)
    return WeekSummary(
        week_start=monday,
        week_end=monday + timedelta(days=BUSINESS_DAYS - 1),
        target_minutes=WEEK_TARGET_MINUTES,
        worked_minutes=worked,
        remaining_minutes=max(0, WEEK_TARGET_MINUTES - worked),
        under_minimum_days=under_minimum,
        days=days,
    )
