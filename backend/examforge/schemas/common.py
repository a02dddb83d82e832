from pydantic import BaseModel, Field

from examforge.services.conflict_service import CheckResult, ConflictKind
from examforge.services.intervals import CLOCK_PATTERN, Weekday

DAY_VALUES = {day.value for day in Weekday}


def validate_time_format(value: str) -> str:
    value = value.strip()
    if not CLOCK_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    return value


class CheckResultOut(BaseModel):
    ok: bool
    reason: str | None = None
    kind: ConflictKind | None = None
    details: dict = Field(default_factory=dict)

    @classmethod
    def from_result(cls, result: CheckResult) -> "CheckResultOut":
        return cls(ok=result.ok, reason=result.reason, kind=result.kind, details=dict(result.details))
