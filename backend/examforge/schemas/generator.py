from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field, field_validator, model_validator

from examforge.schemas.common import validate_time_format
from examforge.services.conflict_service import ConflictKind
from examforge.services.intervals import parse_clock
from examforge.services.session_status import IntentKind

MAX_GENERATION_DAYS = 120


class DailySlotIn(BaseModel):
    start_time: str
    end_time: str

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        return validate_time_format(value)

    @model_validator(mode="after")
    def validate_time_order(self) -> "DailySlotIn":
        if parse_clock(self.start_time) >= parse_clock(self.end_time):
            raise ValueError("end_time must be after start_time")
        return self


class GenerateScheduleRequest(BaseModel):
    start_date: date
    end_date: date
    daily_slots: list[DailySlotIn] = Field(min_length=1, max_length=24)
    include_weekends: bool | None = None
    min_supervisors: int | None = Field(default=None, ge=1, le=20)
    intent_kind: IntentKind | None = None
    commit: bool = False

    @model_validator(mode="after")
    def validate_range(self) -> "GenerateScheduleRequest":
        if self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        if (self.end_date - self.start_date).days >= MAX_GENERATION_DAYS:
            raise ValueError(f"Date range cannot exceed {MAX_GENERATION_DAYS} days")
        return self


class GeneratedSessionOut(BaseModel):
    id: str
    subject_id: str
    session_date: date
    start_time: str
    end_time: str
    room_id: str
    group_ids: list[str]
    supervisor_ids: list[str]
    intent_kind: IntentKind


class UnscheduledSubjectOut(BaseModel):
    subject_id: str
    reason: str
    kind: ConflictKind | None = None


class GenerateScheduleResponse(BaseModel):
    committed: bool
    scheduled: list[GeneratedSessionOut]
    unscheduled: list[UnscheduledSubjectOut]
    candidate_interval_count: int
    cancelled: bool = False
