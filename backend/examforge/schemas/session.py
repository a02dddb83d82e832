from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from examforge.schemas.common import CheckResultOut, validate_time_format
from examforge.services.session_status import IntentKind, LifecycleStatus


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    normalized: list[str] = []
    for item in values:
        value = item.strip()
        if not value or value in seen:
            continue
        seen.add(value)
        normalized.append(value)
    return normalized


class SessionBase(BaseModel):
    subject_id: str = Field(min_length=1, max_length=36)
    session_date: date
    start_time: str
    end_time: str
    room_id: str = Field(min_length=1, max_length=36)
    group_ids: list[str] = Field(default_factory=list, max_length=50)
    supervisor_ids: list[str] = Field(default_factory=list, max_length=50)
    intent_kind: IntentKind = IntentKind.main_exam
    notes: str | None = Field(default=None, max_length=2000)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        return validate_time_format(value)

    @field_validator("group_ids", "supervisor_ids")
    @classmethod
    def normalize_ids(cls, value: list[str]) -> list[str]:
        return _dedupe(value)

    @field_validator("intent_kind", mode="before")
    @classmethod
    def accept_legacy_intent(cls, value):
        if isinstance(value, str):
            parsed = IntentKind.parse(value)
            if parsed is not None:
                return parsed
        return value


class SessionCreate(SessionBase):
    pass


class SessionUpdate(BaseModel):
    subject_id: str | None = Field(default=None, min_length=1, max_length=36)
    session_date: date | None = None
    start_time: str | None = None
    end_time: str | None = None
    room_id: str | None = Field(default=None, min_length=1, max_length=36)
    group_ids: list[str] | None = Field(default=None, max_length=50)
    supervisor_ids: list[str] | None = Field(default=None, max_length=50)
    intent_kind: IntentKind | None = None
    notes: str | None = Field(default=None, max_length=2000)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return validate_time_format(value)

    @field_validator("group_ids", "supervisor_ids")
    @classmethod
    def normalize_ids(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        return _dedupe(value)

    @field_validator("intent_kind", mode="before")
    @classmethod
    def accept_legacy_intent(cls, value):
        if isinstance(value, str):
            parsed = IntentKind.parse(value)
            if parsed is not None:
                return parsed
        return value

    @model_validator(mode="after")
    def validate_not_empty(self) -> "SessionUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class SessionOut(BaseModel):
    id: str
    subject_id: str
    session_date: date
    start_time: str
    end_time: str
    room_id: str
    group_ids: list[str]
    supervisor_ids: list[str]
    intent_kind: IntentKind | None
    status: LifecycleStatus
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SessionStatusOut(BaseModel):
    session_id: str
    status: LifecycleStatus
    intent_kind: IntentKind | None
    now: datetime


class SessionBatchRequest(BaseModel):
    sessions: list[SessionCreate] = Field(min_length=1)
    atomic: bool = False
    dry_run: bool = False


class RejectedSessionOut(BaseModel):
    index: int
    reason: str
    issues: list[CheckResultOut]


class AcceptedSessionOut(BaseModel):
    index: int
    session: SessionOut | None = None


class SessionBatchResponse(BaseModel):
    atomic: bool
    dry_run: bool
    success_count: int
    failure_count: int
    accepted: list[AcceptedSessionOut]
    rejected: list[RejectedSessionOut]
