from datetime import date

from pydantic import BaseModel, Field, field_validator

from examforge.schemas.common import CheckResultOut, validate_time_format
from examforge.services.ledger import ResourceKind


class AvailabilityCheckRequest(BaseModel):
    resource_kind: ResourceKind
    resource_id: str = Field(min_length=1, max_length=36)
    date: date
    start_time: str
    end_time: str
    exclude_session_id: str | None = Field(default=None, max_length=36)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        return validate_time_format(value)


class AvailabilityCheckOut(CheckResultOut):
    resource_kind: ResourceKind
    resource_id: str


class StaffAvailabilityItem(AvailabilityCheckOut):
    name: str
    daily_sessions: int = 0
    weekly_sessions: int = 0


class RoomAvailabilityItem(AvailabilityCheckOut):
    name: str
    capacity: int


class GroupAvailabilityItem(AvailabilityCheckOut):
    name: str
    size: int
