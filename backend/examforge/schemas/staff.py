from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from examforge.schemas.common import DAY_VALUES, validate_time_format
from examforge.services.intervals import parse_clock


class AvailabilityWindow(BaseModel):
    day: str
    start_time: str
    end_time: str

    @field_validator("day")
    @classmethod
    def validate_day(cls, value: str) -> str:
        day = value.strip().capitalize()
        if day not in DAY_VALUES:
            raise ValueError("Invalid day value")
        return day

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        return validate_time_format(value)

    @model_validator(mode="after")
    def validate_time_order(self) -> "AvailabilityWindow":
        if parse_clock(self.start_time) >= parse_clock(self.end_time):
            raise ValueError("end_time must be after start_time")
        return self


class StaffAvailabilityUpdate(BaseModel):
    availability_windows: list[AvailabilityWindow] = Field(default_factory=list, max_length=100)


class DateOverrideCreate(BaseModel):
    override_date: date
    start_time: str
    end_time: str
    available: bool = False
    reason: str = Field(min_length=3, max_length=1000)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        return validate_time_format(value)

    @model_validator(mode="after")
    def validate_time_order(self) -> "DateOverrideCreate":
        if parse_clock(self.start_time) >= parse_clock(self.end_time):
            raise ValueError("end_time must be after start_time")
        return self


class DateOverrideOut(BaseModel):
    id: str
    staff_id: str
    override_date: date
    start_time: str
    end_time: str
    available: bool
    reason: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class StaffAvailabilityOut(BaseModel):
    staff_id: str
    name: str
    availability_windows: list[AvailabilityWindow]
    overrides: list[DateOverrideOut]
