"""Civil-time intervals shared by every availability and conflict check.

Dates are plain calendar dates and times are wall-clock times in the zone the
exam was entered in. Nothing here converts between zones, so the weekday of
a date is always ``date.weekday()`` of that same civil date.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, time
from enum import Enum


CLOCK_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class Weekday(str, Enum):
    monday = "Monday"
    tuesday = "Tuesday"
    wednesday = "Wednesday"
    thursday = "Thursday"
    friday = "Friday"
    saturday = "Saturday"
    sunday = "Sunday"


# Index matches date.weekday(): Monday == 0.
WEEKDAYS: tuple[Weekday, ...] = tuple(Weekday)


class InvalidIntervalError(ValueError):
    """Raised when an interval does not satisfy ``start < end``."""


def parse_clock(value: str | time) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    match = CLOCK_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Time must be in HH:MM 24-hour format, got {value!r}")
    return time(int(match.group(1)), int(match.group(2)))


def format_clock(value: time) -> str:
    return value.strftime("%H:%M")


def weekday_of(value: date) -> Weekday:
    return WEEKDAYS[value.weekday()]


@dataclass(frozen=True, order=True)
class TimeInterval:
    date: date
    start: time
    end: time

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise InvalidIntervalError(
                f"Interval start {format_clock(self.start)} must be before end {format_clock(self.end)}"
            )

    @classmethod
    def parse(cls, day: date | str, start: str | time, end: str | time) -> "TimeInterval":
        if isinstance(day, str):
            day = date.fromisoformat(day)
        return cls(day, parse_clock(start), parse_clock(end))

    @property
    def weekday(self) -> Weekday:
        return weekday_of(self.date)

    def overlaps(self, other: "TimeInterval") -> bool:
        return overlaps(self, other)

    def label(self) -> str:
        return f"{self.date.isoformat()} {format_clock(self.start)}-{format_clock(self.end)}"


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    # Half-open: touching endpoints do not overlap.
    return a.date == b.date and a.start < b.end and a.end > b.start
