"""Pydantic schemas for day adjustments, day reset and the weekly summary."""
from __future__ import annotations
from datetime import date, datetime
from typing import Any
from worklog.models.day_adjustment import DayType
from worklog.schemas.common import CamelModel
from worklog.schemas.entry import EntryOut


class AdjustmentWrite(CamelModel):
    day_type: Any = None
    permission_minutes: Any = None


class AdjustmentOut(CamelModel):
    day_date: str
    day_type: DayType
    permission_minutes: int
    updated_at: datetime


class AdjustmentEnvelope(CamelModel):
    message: str
    adjustment: AdjustmentOut


class AdjustmentList(CamelModel):
    adjustments: list[AdjustmentOut]


class DayResetOut(CamelModel):
    message: str
    day_date: str


class DaySummaryOut(CamelModel):
    day_date: date
    weekday: int
    planned_minutes: int
    worked_minutes: int
    day_type: str
    permission_minutes: int
    effective_minutes: int
    entries: list[EntryOut] = []


class WeekSummaryOut(CamelModel):
    week_start: date
    week_end: date
    target_minutes: int
    worked_minutes: int
    remaining_minutes: int
    under_minimum_days: int
    days: list[DaySummaryOut] = []
