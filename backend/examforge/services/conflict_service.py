from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum
from typing import Iterable, Mapping

from examforge.services.availability import AvailabilityProfile
from examforge.services.intervals import InvalidIntervalError, TimeInterval, format_clock
from examforge.services.ledger import BookedSession, BookingLedger, ResourceKind


class ConflictKind(str, Enum):
    invalid_interval = "invalid_interval"
    resource_not_found = "resource_not_found"
    availability_denied = "availability_denied"
    booking_conflict = "booking_conflict"
    capacity_exceeded = "capacity_exceeded"
    batch_internal_conflict = "batch_internal_conflict"
    incomplete_session = "incomplete_session"
    batch_aborted = "batch_aborted"


@dataclass(frozen=True)
class CheckResult:
    ok: bool
    reason: str | None = None
    kind: ConflictKind | None = None
    details: dict = field(default_factory=dict, compare=False)

    @classmethod
    def passed(cls, reason: str | None = None) -> "CheckResult":
        return cls(ok=True, reason=reason)

    @classmethod
    def failed(cls, kind: ConflictKind, reason: str, **details) -> "CheckResult":
        return cls(ok=False, reason=reason, kind=kind, details=details)

    def as_dict(self) -> dict:
        return {
            "ok": self.ok,
            "reason": self.reason,
            "kind": self.kind.value if self.kind is not None else None,
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class RoomInfo:
    room_id: str
    capacity: int
    name: str | None = None

    @property
    def label(self) -> str:
        return self.name or self.room_id


@dataclass(frozen=True)
class GroupInfo:
    group_id: str
    size: int
    name: str | None = None

    @property
    def label(self) -> str:
        return self.name or self.group_id


def _booking_details(kind: ResourceKind, resource_id: str, clash: BookedSession) -> dict:
    return {
        "resource_kind": kind.value,
        "resource_id": resource_id,
        "conflicting_session_id": clash.session_id,
        "conflicting_date": clash.interval.date.isoformat(),
        "conflicting_start": format_clock(clash.interval.start),
        "conflicting_end": format_clock(clash.interval.end),
    }


class ConflictChecker:
    """Answers "can this resource take this session at this time?".

    Holds only read-only snapshots, so a single instance can serve concurrent
    requests. Every query returns a ``CheckResult`` instead of raising.
    """

    def __init__(
        self,
        ledger: BookingLedger,
        profiles: Mapping[str, AvailabilityProfile],
        rooms: Mapping[str, RoomInfo],
        groups: Mapping[str, GroupInfo],
    ) -> None:
        self.ledger = ledger
        self.profiles = profiles
        self.rooms = rooms
        self.groups = groups

    def with_ledger(self, ledger: BookingLedger) -> "ConflictChecker":
        return ConflictChecker(ledger, self.profiles, self.rooms, self.groups)

    def staff_available(
        self,
        staff_id: str,
        interval: TimeInterval,
        exclude_session_id: str | None = None,
    ) -> CheckResult:
        profile = self.profiles.get(staff_id)
        if profile is None:
            return CheckResult.failed(
                ConflictKind.resource_not_found,
                f"Staff member {staff_id} not found",
                resource_kind=ResourceKind.staff.value,
                resource_id=staff_id,
            )

        verdict = profile.is_nominally_available(interval)
        if not verdict.available:
            details = {"resource_kind": ResourceKind.staff.value, "resource_id": staff_id, "source": verdict.source}
            if verdict.override is not None:
                details["override_id"] = verdict.override.override_id
            return CheckResult.failed(ConflictKind.availability_denied, verdict.reason, **details)

        clash = self.ledger.find_conflict(ResourceKind.staff, staff_id, interval, exclude_session_id)
        if clash is not None:
            return CheckResult.failed(
                ConflictKind.booking_conflict,
                f"{profile.label} is already assigned to another session at this time "
                f"({format_clock(clash.interval.start)} to {format_clock(clash.interval.end)})",
                **_booking_details(ResourceKind.staff, staff_id, clash),
            )
        return CheckResult.passed(verdict.reason)

    def room_available(
        self,
        room_id: str,
        interval: TimeInterval,
        exclude_session_id: str | None = None,
    ) -> CheckResult:
        room = self.rooms.get(room_id)
        if room is None:
            return CheckResult.failed(
                ConflictKind.resource_not_found,
                f"Room {room_id} not found",
                resource_kind=ResourceKind.room.value,
                resource_id=room_id,
            )
        clash = self.ledger.find_conflict(ResourceKind.room, room_id, interval, exclude_session_id)
        if clash is not None:
            return CheckResult.failed(
                ConflictKind.booking_conflict,
                f"Room {room.label} is already booked for another session from "
                f"{format_clock(clash.interval.start)} to {format_clock(clash.interval.end)}",
                **_booking_details(ResourceKind.room, room_id, clash),
            )
        return CheckResult.passed()

    def group_available(
        self,
        group_id: str,
        interval: TimeInterval,
        exclude_session_id: str | None = None,
    ) -> CheckResult:
        group = self.groups.get(group_id)
        if group is None:
            return CheckResult.failed(
                ConflictKind.resource_not_found,
                f"Group {group_id} not found",
                resource_kind=ResourceKind.group.value,
                resource_id=group_id,
            )
        clash = self.ledger.find_conflict(ResourceKind.group, group_id, interval, exclude_session_id)
        if clash is not None:
            return CheckResult.failed(
                ConflictKind.booking_conflict,
                f"Group {group.label} already has an exam scheduled from "
                f"{format_clock(clash.interval.start)} to {format_clock(clash.interval.end)}",
                **_booking_details(ResourceKind.group, group_id, clash),
            )
        return CheckResult.passed()

    def capacity_ok(self, room_id: str, group_ids: Iterable[str]) -> CheckResult:
        room = self.rooms.get(room_id)
        if room is None:
            return CheckResult.failed(
                ConflictKind.resource_not_found,
                f"Room {room_id} not found",
                resource_kind=ResourceKind.room.value,
                resource_id=room_id,
            )
        total = 0
        for group_id in group_ids:
            group = self.groups.get(group_id)
            if group is None:
                return CheckResult.failed(
                    ConflictKind.resource_not_found,
                    f"Group {group_id} not found",
                    resource_kind=ResourceKind.group.value,
                    resource_id=group_id,
                )
            total += group.size
        if total > room.capacity:
            return CheckResult.failed(
                ConflictKind.capacity_exceeded,
                f"Room {room.label} holds {room.capacity} students but the selected groups total {total}",
                room_id=room_id,
                capacity=room.capacity,
                required=total,
            )
        return CheckResult.passed()

    def check(
        self,
        kind: ResourceKind,
        resource_id: str,
        interval: TimeInterval,
        exclude_session_id: str | None = None,
    ) -> CheckResult:
        if kind == ResourceKind.staff:
            return self.staff_available(resource_id, interval, exclude_session_id)
        if kind == ResourceKind.room:
            return self.room_available(resource_id, interval, exclude_session_id)
        return self.group_available(resource_id, interval, exclude_session_id)

    def check_raw(
        self,
        kind: ResourceKind,
        resource_id: str,
        day: date,
        start: time,
        end: time,
        exclude_session_id: str | None = None,
    ) -> CheckResult:
        """Like ``check`` but validates the interval first instead of trusting the caller."""
        try:
            interval = TimeInterval(day, start, end)
        except InvalidIntervalError as exc:
            return CheckResult.failed(ConflictKind.invalid_interval, str(exc))
        return self.check(kind, resource_id, interval, exclude_session_id)
