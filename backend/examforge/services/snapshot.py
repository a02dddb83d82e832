"""Builds read-only engine snapshots from the database."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from examforge.core.exceptions import InfrastructureError
from examforge.models.exam_session import ExamSession
from examforge.models.group import StudentGroup
from examforge.models.room import Room
from examforge.models.staff import Staff, StaffDateOverride
from examforge.models.subject import Subject
from examforge.services.availability import AvailabilityProfile, DateOverride, WeeklyAvailabilityRule
from examforge.services.conflict_service import ConflictChecker, GroupInfo, RoomInfo
from examforge.services.intervals import InvalidIntervalError, TimeInterval, Weekday, parse_clock
from examforge.services.ledger import BookedSession, BookingLedger
from examforge.services.schedule_generator import SubjectInfo
from examforge.services.session_status import LifecycleOverride

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceSnapshot:
    ledger: BookingLedger
    profiles: dict[str, AvailabilityProfile] = field(default_factory=dict)
    rooms: dict[str, RoomInfo] = field(default_factory=dict)
    groups: dict[str, GroupInfo] = field(default_factory=dict)
    subjects: dict[str, SubjectInfo] = field(default_factory=dict)

    def checker(self) -> ConflictChecker:
        return ConflictChecker(self.ledger, self.profiles, self.rooms, self.groups)


def weekly_rules_from_windows(windows: list[dict]) -> tuple[WeeklyAvailabilityRule, ...]:
    return tuple(
        WeeklyAvailabilityRule(
            day=Weekday(item["day"]),
            start=parse_clock(item["start_time"]),
            end=parse_clock(item["end_time"]),
        )
        for item in windows
    )


def override_from_row(row: StaffDateOverride) -> DateOverride:
    return DateOverride(
        date=row.override_date,
        start=parse_clock(row.start_time),
        end=parse_clock(row.end_time),
        available=row.available,
        reason=row.reason,
        override_id=row.id,
    )


def booking_from_row(row: ExamSession) -> BookedSession:
    return BookedSession(
        session_id=row.id,
        subject_id=row.subject_id,
        interval=TimeInterval.parse(row.session_date, row.start_time, row.end_time),
        room_id=row.room_id,
        group_ids=frozenset(row.group_ids or ()),
        supervisor_ids=frozenset(row.supervisor_ids or ()),
        intent_kind=row.intent_kind,
        cancelled=row.lifecycle_override == LifecycleOverride.cancelled,
    )


def _profile_for(staff: Staff, overrides: list[StaffDateOverride]) -> AvailabilityProfile:
    try:
        rules = weekly_rules_from_windows(staff.availability_windows or [])
    except (InvalidIntervalError, KeyError, ValueError):
        logger.warning("Ignoring malformed availability windows for staff %s", staff.id, exc_info=True)
        rules = ()
    return AvailabilityProfile(
        staff_id=staff.id,
        weekly_rules=rules,
        overrides=tuple(override_from_row(item) for item in overrides),
        display_name=staff.name,
    )


def load_ledger(db: Session, *, date_from: date | None = None, date_to: date | None = None) -> BookingLedger:
    query = select(ExamSession).where(
        (ExamSession.lifecycle_override.is_(None)) | (ExamSession.lifecycle_override != LifecycleOverride.cancelled)
    )
    if date_from is not None:
        query = query.where(ExamSession.session_date >= date_from)
    if date_to is not None:
        query = query.where(ExamSession.session_date <= date_to)
    return BookingLedger.from_sessions(booking_from_row(row) for row in db.execute(query).scalars())


def load_snapshot(db: Session, *, date_from: date | None = None, date_to: date | None = None) -> ResourceSnapshot:
    """Read everything the engine needs in one pass.

    Restricting the date range only narrows the ledger; profiles and
    resources are always loaded in full.
    """
    try:
        overrides_by_staff: dict[str, list[StaffDateOverride]] = defaultdict(list)
        override_query = select(StaffDateOverride).order_by(StaffDateOverride.override_date, StaffDateOverride.start_time)
        for row in db.execute(override_query).scalars():
            overrides_by_staff[row.staff_id].append(row)

        profiles = {
            staff.id: _profile_for(staff, overrides_by_staff.get(staff.id, []))
            for staff in db.execute(select(Staff)).scalars()
        }
        rooms = {
            room.id: RoomInfo(room_id=room.id, capacity=room.capacity, name=room.name)
            for room in db.execute(select(Room)).scalars()
        }
        groups = {
            group.id: GroupInfo(group_id=group.id, size=group.size, name=group.name)
            for group in db.execute(select(StudentGroup)).scalars()
        }
        subjects = {
            subject.id: SubjectInfo(subject_id=subject.id, group_ids=tuple(subject.group_ids or ()), code=subject.code)
            for subject in db.execute(select(Subject)).scalars()
        }
        ledger = load_ledger(db, date_from=date_from, date_to=date_to)
    except SQLAlchemyError as exc:
        logger.exception("SNAPSHOT LOAD FAILED | date_from=%s | date_to=%s", date_from, date_to)
        raise InfrastructureError() from exc

    return ResourceSnapshot(ledger=ledger, profiles=profiles, rooms=rooms, groups=groups, subjects=subjects)
