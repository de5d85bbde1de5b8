"""Timer API routes: delegates to timer_service for invariant enforcement.

Every route requires a valid session; unsafe methods also require the CSRF
header.
"""
import logging
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from worklog import security
from worklog.config import settings
from worklog.database import get_db
from worklog.errors import ValidationError
from worklog.schemas.adjustment import (
    AdjustmentEnvelope,
    AdjustmentList,
    AdjustmentOut,
    AdjustmentWrite,
    DayResetOut,
    WeekSummaryOut,
)
from worklog.schemas.entry import EntryEnvelope, EntryList, EntryOut, EntryWrite, TimerStatus
from worklog.security import SessionContext
from worklog.services import accounting, timer_service
from worklog.services.validation import (
    normalize_day_type,
    normalize_permission_minutes,
    parse_day_date,
    require_day_date,
    require_interval,
    require_range,
)

logger = logging.getLogger(__name__)
router = APIRouter(
    dependencies=[Depends(security.get_session_context), Depends(security.require_csrf)],
)


@router.get("/status", response_model=TimerStatus)
def timer_status(
    ctx: SessionContext = Depends(security.get_session_context),
    db: Session = Depends(get_db),
):
    active = timer_service.get_active_entry(db, ctx.user_id)
    return TimerStatus(active_entry=EntryOut.model_validate(active) if active else None)


@router.post("/start", response_model=EntryEnvelope, status_code=status.HTTP_201_CREATED)
def start_timer(
    ctx: SessionContext = Depends(security.get_session_context),
    db: Session = Depends(get_db),
):
    entry = timer_service.start_timer(db, ctx.user_id)
    return EntryEnvelope(message="Clock-in recorded.", entry=EntryOut.model_validate(entry))


@router.post("/stop", response_model=EntryEnvelope)
def stop_timer(
    ctx: SessionContext = Depends(security.get_session_context),
    db: Session = Depends(get_db),
):
    entry = timer_service.stop_timer(db, ctx.user_id)
    return EntryEnvelope(message="Clock-out recorded.", entry=EntryOut.model_validate(entry))


@router.get("/entries", response_model=EntryList)
def list_entries(
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = Query(None),
    ctx: SessionContext = Depends(security.get_session_context),
    db: Session = Depends(get_db),
):
    """Entries intersecting [from, to), at most 31 days wide."""
    start, end = require_range(from_, to)
    rows = timer_service.list_entries(db, ctx.user_id, start, end)
    return EntryList(entries=[EntryOut.model_validate(r) for r in rows])


@router.post("/entries", response_model=EntryEnvelope, status_code=status.HTTP_201_CREATED)
def create_entry(
    payload: EntryWrite,
    ctx: SessionContext = Depends(security.get_session_context),
    db: Session = Depends(get_db),
):
    start, end = require_interval(payload.start_at, payload.end_at)
    entry = timer_service.create_entry(db, ctx.user_id, start, end)
    return EntryEnvelope(message="Manual entry saved.", entry=EntryOut.model_validate(entry))


@router.put("/entries/{entry_id}", response_model=EntryEnvelope)
def update_entry(
    entry_id: str,
    payload: EntryWrite,
    ctx: SessionContext = Depends(security.get_session_context),
    db: Session = Depends(get_db),
):
    start, end = require_interval(payload.start_at, payload.end_at)
    entry = timer_service.update_entry(db, ctx.user_id, entry_id, start, end)
    return EntryEnvelope(message="Entry updated.", entry=EntryOut.model_validate(entry))


@router.get("/day-adjustments", response_model=AdjustmentList)
def list_day_adjustments(
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = Query(None),
    ctx: SessionContext = Depends(security.get_session_context),
    db: Session = Depends(get_db),
):
    start, end = require_range(from_, to)
    from_day = accounting.local_date(start, settings.tz)
    to_day = accounting.local_date(end, settings.tz)
    rows = timer_service.list_adjustments(db, ctx.user_id, from_day, to_day)
    return AdjustmentList(adjustments=[AdjustmentOut.model_validate(r) for r in rows])


@router.put("/day-adjustments/{day_date}", response_model=AdjustmentEnvelope)
def save_day_adjustment(
    day_date: str,
    payload: AdjustmentWrite,
    ctx: SessionContext = Depends(security.get_session_context),
    db: Session = Depends(get_db),
):
    day = parse_day_date(day_date)
    day_type = normalize_day_type(payload.day_type)
    minutes = normalize_permission_minutes(payload.permission_minutes)
    if day is None or day_type is None or minutes is None:
        raise ValidationError("Invalid day data.")

    adjustment = timer_service.save_adjustment(db, ctx.user_id, day, day_type, minutes)
    return AdjustmentEnvelope(message="Day updated.", adjustment=AdjustmentOut.model_validate(adjustment))


@router.delete("/day/{day_date}", response_model=DayResetOut)
def reset_day(
    day_date: str,
    ctx: SessionContext = Depends(security.get_session_context),
    db: Session = Depends(get_db),
):
    """Remove every entry starting on the day plus its adjustment, in one transaction."""
    day = require_day_date(day_date)
    timer_service.reset_day(db, ctx.user_id, day)
    return DayResetOut(message="Day reset.", day_date=day.isoformat())


@router.get("/week", response_model=WeekSummaryOut)
def week_summary(
    start: Optional[str] = Query(None, description="Any day of the week, YYYY-MM-DD"),
    ctx: SessionContext = Depends(security.get_session_context),
    db: Session = Depends(get_db),
):
    """Mon-Fri totals against the weekly target for the week containing ``start``."""
    if start is None:
        day = datetime.now(settings.tz).date()
    else:
        day = require_day_date(start)
    summary = timer_service.week_summary(db, ctx.user_id, day)
    return WeekSummaryOut.model_validate(summary)
