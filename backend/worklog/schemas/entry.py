"""Pydantic schemas for work entries and the timer."""
from __future__ import annotations
from datetime import datetime
from typing import Any, Optional
from worklog.schemas.common import CamelModel


class EntryWrite(CamelModel):
    # ISO-8601 strings, parsed by services.validation
    start_at: Any = None
    end_at: Any = None


class EntryOut(CamelModel):
    id: str
    start_at: datetime
    end_at: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class EntryEnvelope(CamelModel):
    message: str
    entry: EntryOut


class EntryList(CamelModel):
    entries: list[EntryOut]


class TimerStatus(CamelModel):
    active_entry: Optional[EntryOut] = None
