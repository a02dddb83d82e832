"""Per-staff availability profile: recurring weekly rules plus dated overrides."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, time
from typing import Iterable, Literal

from examforge.services.intervals import InvalidIntervalError, TimeInterval, Weekday, format_clock


@dataclass(frozen=True)
class WeeklyAvailabilityRule:
    day: Weekday
    start: time
    end: time

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise InvalidIntervalError(
                f"Availability on {self.day.value} must start before it ends "
                f"({format_clock(self.start)}-{format_clock(self.end)})"
            )

    def contains(self, interval: TimeInterval) -> bool:
        return interval.weekday == self.day and self.start <= interval.start and interval.end <= self.end

    def bounds(self) -> str:
        return f"{format_clock(self.start)} to {format_clock(self.end)}"


@dataclass(frozen=True)
class DateOverride:
    date: date
    start: time
    end: time
    available: bool
    reason: str
    override_id: str | None = None

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.date, self.start, self.end)


AvailabilitySource = Literal["override", "weekly_rule", "none"]


@dataclass(frozen=True)
class AvailabilityVerdict:
    available: bool
    reason: str
    source: AvailabilitySource
    override: DateOverride | None = None


@dataclass(frozen=True)
class AvailabilityProfile:
    staff_id: str
    weekly_rules: tuple[WeeklyAvailabilityRule, ...] = ()
    overrides: tuple[DateOverride, ...] = ()
    display_name: str | None = None
    _rules_by_day: dict[Weekday, tuple[WeeklyAvailabilityRule, ...]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        grouped: dict[Weekday, list[WeeklyAvailabilityRule]] = defaultdict(list)
        for rule in self.weekly_rules:
            grouped[rule.day].append(rule)
        object.__setattr__(
            self,
            "_rules_by_day",
            {day: tuple(sorted(rules, key=lambda item: item.start)) for day, rules in grouped.items()},
        )

    @property
    def label(self) -> str:
        return self.display_name or self.staff_id

    def rules_for(self, day: Weekday) -> tuple[WeeklyAvailabilityRule, ...]:
        return self._rules_by_day.get(day, ())

    def overrides_for(self, interval: TimeInterval) -> list[DateOverride]:
        return [item for item in self.overrides if item.date == interval.date and item.interval.overlaps(interval)]

    def is_nominally_available(self, interval: TimeInterval) -> AvailabilityVerdict:
        """Resolve availability from the profile alone, ignoring existing bookings.

        Overrides for the exact date are consulted first. A blocking override
        wins over a granting one when both overlap the interval. Without an
        applicable override the interval must sit entirely inside at least one
        weekly rule for its weekday.
        """
        matching = self.overrides_for(interval)
        blocking = next((item for item in matching if not item.available), None)
        if blocking is not None:
            return AvailabilityVerdict(
                available=False,
                reason=f"{self.label} has a special occasion: {blocking.reason}",
                source="override",
                override=blocking,
            )
        granting = next((item for item in matching if item.available), None)
        if granting is not None:
            return AvailabilityVerdict(
                available=True,
                reason=f"{self.label} is available (special occasion: {granting.reason})",
                source="override",
                override=granting,
            )

        day = interval.weekday
        rules = self.rules_for(day)
        if not rules:
            return AvailabilityVerdict(
                available=False,
                reason=f"{self.label} has no availability configured for {day.value}",
                source="none",
            )
        if any(rule.contains(interval) for rule in rules):
            return AvailabilityVerdict(available=True, reason=f"{self.label} is available", source="weekly_rule")

        windows = ", ".join(rule.bounds() for rule in rules)
        return AvailabilityVerdict(
            available=False,
            reason=(
                f"{self.label} is only available from {windows} on {day.value}s. "
                f"Session time: {format_clock(interval.start)} to {format_clock(interval.end)}"
            ),
            source="weekly_rule",
        )


def is_nominally_available(profile: AvailabilityProfile, interval: TimeInterval) -> AvailabilityVerdict:
    return profile.is_nominally_available(interval)


def find_rule_overlaps(
    rules: Iterable[WeeklyAvailabilityRule],
) -> list[tuple[WeeklyAvailabilityRule, WeeklyAvailabilityRule]]:
    """Return pairs of rules on the same weekday whose windows overlap."""
    grouped: dict[Weekday, list[WeeklyAvailabilityRule]] = defaultdict(list)
    for rule in rules:
        grouped[rule.day].append(rule)

    clashes: list[tuple[WeeklyAvailabilityRule, WeeklyAvailabilityRule]] = []
    for day_rules in grouped.values():
        ordered = sorted(day_rules, key=lambda item: (item.start, item.end))
        for index, first in enumerate(ordered):
            for second in ordered[index + 1 :]:
                if second.start >= first.end:
                    break
                clashes.append((first, second))
    return clashes
