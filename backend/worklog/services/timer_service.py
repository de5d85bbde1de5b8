"""Timer service: work entries, day adjustments, day reset and weekly summary.

Responsibilities:
- At most one open entry per user (timer start/stop)
- No overlapping intervals per user on create/update
- Upsert of per-day adjustments
- Atomic reset of a day (entries + adjustment in one transaction)
"""
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from worklog.config import settings
from worklog.errors import ConflictError, NotFoundError, ValidationError
from worklog.models.day_adjustment import DayAdjustment, DayType
from worklog.models.work_entry import WorkEntry
from worklog.services import accounting

logger = logging.getLogger(__name__)

OVERLAP_MESSAGE = "Interval overlaps another entry."
TIMER_RUNNING_MESSAGE = "A timer is already running."


def _now() -> datetime:
    return datetime.now(timezone.utc)


def get_active_entry(db: Session, user_id: str) -> Optional[WorkEntry]:
    return (
        db.query(WorkEntry)
        .filter(WorkEntry.user_id == user_id, WorkEntry.end_at.is_(None))
        .order_by(WorkEntry.start_at.desc())
        .first()
    )


def get_entry(db: Session, user_id: str, entry_id: str) -> Optional[WorkEntry]:
    return db.query(WorkEntry).filter(WorkEntry.id == entry_id, WorkEntry.user_id == user_id).first()


def _check_overlap(
    db: Session,
    user_id: str,
    start_at: datetime,
    end_at: datetime,
    exclude_id: Optional[str] = None,
) -> None:
    """Raise ConflictError if [start_at, end_at) intersects another entry of the user."""
    candidates = (
        db.query(WorkEntry)
        .filter(WorkEntry.user_id == user_id, WorkEntry.start_at < end_at)
        .all()
    )
    clash = accounting.find_overlap(candidates, start_at, end_at, exclude_id)
    if clash is not None:
        logger.info("Rejected interval %s-%s for user %s: overlaps entry %s", start_at, end_at, user_id, clash.id)
        raise ConflictError(OVERLAP_MESSAGE)


def start_timer(db: Session, user_id: str) -> WorkEntry:
    if get_active_entry(db, user_id) is not None:
        raise ConflictError(TIMER_RUNNING_MESSAGE)

    now = _now()
    _check_overlap(db, user_id, now, accounting.FAR_FUTURE)

    entry = WorkEntry(user_id=user_id, start_at=now, end_at=None, created_at=now, updated_at=now)
    db.add(entry)
    try:
        db.commit()
    except IntegrityError as exc:
        # a concurrent start won the unique open-entry index
        db.rollback()
        logger.info("Concurrent timer start rejected for user %s", user_id)
        raise ConflictError(TIMER_RUNNING_MESSAGE) from exc
    db.refresh(entry)
    logger.info("Started timer %s for user %s", entry.id, user_id)
    return entry


def stop_timer(db: Session, user_id: str) -> WorkEntry:
    entry = get_active_entry(db, user_id)
    if entry is None:
        raise ConflictError("No running timer to stop.")

    end_at = _now()
    if end_at <= entry.start_at:
        raise ValidationError("Invalid stop time.")

    entry.end_at = end_at
    entry.updated_at = end_at
    db.commit()
    db.refresh(entry)
    logger.info("Stopped timer %s for user %s after %s min", entry.id, user_id, entry.duration_minutes)
    return entry


def list_entries(db: Session, user_id: str, start: datetime, end: datetime) -> list[WorkEntry]:
    """Entries starting before ``end`` that are still open or end at/after ``start``."""
    return (
        db.query(WorkEntry)
        .filter(
            WorkEntry.user_id == user_id,
            WorkEntry.start_at < end,
            or_(WorkEntry.end_at.is_(None), WorkEntry.end_at >= start),
        )
        .order_by(WorkEntry.start_at)
        .all()
    )


def create_entry(db: Session, user_id: str, start_at: datetime, end_at: datetime) -> WorkEntry:
    if end_at <= start_at:
        raise ValidationError("endAt must be after startAt.")
    _check_overlap(db, user_id, start_at, end_at)

    now = _now()
    entry = WorkEntry(user_id=user_id, start_at=start_at, end_at=end_at, created_at=now, updated_at=now)
    db.add(entry)
    db.commit()
    db.refresh(entry)
    logger.info("Created manual entry %s for user %s", entry.id, user_id)
    return entry


def update_entry(db: Session, user_id: str, entry_id: str, start_at: datetime, end_at: datetime) -> WorkEntry:
    if end_at <= start_at:
        raise ValidationError("endAt must be after startAt.")

    entry = get_entry(db, user_id, entry_id)
    if entry is None:
        raise NotFoundError("Entry not found.")

    _check_overlap(db, user_id, start_at, end_at, exclude_id=entry_id)

    entry.start_at = start_at
    entry.end_at = end_at
    entry.updated_at = _now()
    db.commit()
    db.refresh(entry)
    logger.info("Updated entry %s for user %s", entry_id, user_id)
    return entry


def list_adjustments(db: Session, user_id: str, from_day: date, to_day: date) -> list[DayAdjustment]:
    """Adjustments for days in [from_day, to_day)."""
    return (
        db.query(DayAdjustment)
        .filter(
            DayAdjustment.user_id == user_id,
            DayAdjustment.day_date >= from_day.isoformat(),
            DayAdjustment.day_date < to_day.isoformat(),
        )
        .order_by(DayAdjustment.day_date)
        .all()
    )


def save_adjustment(
    db: Session,
    user_id: str,
    day: date,
    day_type: DayType,
    permission_minutes: int,
) -> DayAdjustment:
    """Insert or replace the adjustment row for (user, day)."""
    now = _now()
    adjustment = db.get(DayAdjustment, (user_id, day.isoformat()))
    if adjustment is None:
        adjustment = DayAdjustment(user_id=user_id, day_date=day.isoformat())
        db.add(adjustment)
    adjustment.day_type = day_type
    adjustment.permission_minutes = permission_minutes
    adjustment.updated_at = now
    db.commit()
    db.refresh(adjustment)
    logger.info("Saved adjustment %s for user %s: %s +%d min", day, user_id, day_type.value, permission_minutes)
    return adjustment


def reset_day(db: Session, user_id: str, day: date) -> None:
    """Delete the entries starting on ``day`` (local) and its adjustment, atomically."""
    start, end = accounting.local_day_bounds(day, settings.tz)
    try:
        removed = (
            db.query(WorkEntry)
            .filter(WorkEntry.user_id == user_id, WorkEntry.start_at >= start, WorkEntry.start_at < end)
            .delete(synchronize_session=False)
        )
        db.query(DayAdjustment).filter(
            DayAdjustment.user_id == user_id,
            DayAdjustment.day_date == day.isoformat(),
        ).delete(synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Reset day %s for user %s (%d entries removed)", day, user_id, removed)


def week_summary(db: Session, user_id: str, any_day: date) -> accounting.WeekSummary:
    monday = accounting.week_start(any_day)
    friday = monday + timedelta(days=accounting.BUSINESS_DAYS - 1)
    start, _ = accounting.local_day_bounds(monday, settings.tz)
    _, end = accounting.local_day_bounds(friday, settings.tz)
    entries = list_entries(db, user_id, start, end)
    adjustments = list_adjustments(db, user_id, monday, friday + timedelta(days=1))
    return accounting.summarize_week(monday, entries, adjustments, settings.tz)
