"""Input normalisation and validation helpers shared by the routers."""
import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from worklog.config import settings
from worklog.errors import ValidationError
from worklog.models.day_adjustment import DayType
from worklog.services.accounting import MAX_PERMISSION_MINUTES

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DAY_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MAX_RANGE_DAYS = 31


def sanitize_email(value: Any) -> str:
    return str(value or "").strip().lower()


def sanitize_name(value: Any) -> str:
    return str(value or "").strip()


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email))


def is_strong_password(password: str) -> bool:
    """At least 8 characters with a lowercase letter, an uppercase letter and a digit."""
    return (
        len(password) >= 8
        and re.search(r"[a-z]", password) is not None
        and re.search(r"[A-Z]", password) is not None
        and re.search(r"\d", password) is not None
    )


def parse_instant(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware UTC datetime, or None.

    Naive timestamps are read as wall-clock time in the configured timezone.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = settings.tz.localize(parsed)
    return parsed.astimezone(timezone.utc)


def parse_day_date(value: Any) -> Optional[date]:
    text = str(value or "")
    if not DAY_DATE_RE.match(text):
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def require_day_date(value: Any) -> date:
    day = parse_day_date(value)
    if day is None:
        raise ValidationError("Invalid day.")
    return day


def normalize_day_type(value: Any) -> Optional[DayType]:
    text = str(value or DayType.none.value).strip().lower()
    try:
        return DayType(text)
    except ValueError:
        return None


def normalize_permission_minutes(value: Any) -> Optional[int]:
    """Round half-up to whole minutes in [0, 720]; empty and boolean input count as numbers."""
    if value is None or (isinstance(value, str) and not value.strip()):
        value = 0
    if isinstance(value, bool):
        value = int(value)
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(parsed):
        return None
    rounded = int(math.floor(parsed + 0.5))
    if rounded < 0 or rounded > MAX_PERMISSION_MINUTES:
        return None
    return rounded


def require_range(from_value: Any, to_value: Any) -> tuple[datetime, datetime]:
    """Validate a ``from``/``to`` query pair: both parseable, ordered, at most 31 days."""
    start = parse_instant(from_value)
    end = parse_instant(to_value)
    if start is None or end is None or start >= end:
        raise ValidationError("Invalid range.")
    if end - start > timedelta(days=MAX_RANGE_DAYS):
        raise ValidationError(f"Range too wide (max {MAX_RANGE_DAYS} days).")
    return start, end


def require_interval(start_value: Any, end_value: Any) -> tuple[datetime, datetime]:
    start = parse_instant(start_value)
    end = parse_instant(end_value)
    if start is None or end is None:
        raise ValidationError("startAt and endAt are required.")
    if end <= start:
        raise ValidationError("endAt must be after startAt.")
    return start, end
