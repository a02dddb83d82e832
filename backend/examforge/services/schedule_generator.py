"""Greedy exam timetable generation, most-constrained subject first.

The generator works on a snapshot: it layers its own tentative bookings over
a private copy of the ledger and returns the result without writing
anything. Committing the output against live data is the caller's job.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, time, timedelta
from time import perf_counter
from typing import Callable, Mapping, Sequence

from examforge.services.conflict_service import CheckResult, ConflictChecker, ConflictKind
from examforge.services.intervals import TimeInterval, format_clock
from examforge.services.ledger import BookedSession
from examforge.services.session_status import IntentKind
from examforge.services.workload import weekly_window

logger = logging.getLogger(__name__)

GENERATED_SESSION_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_DNS, "sessions.examforge")
WEEKEND_DAYS = {5, 6}


@dataclass(frozen=True)
class DailySlot:
    start: time
    end: time


@dataclass(frozen=True)
class SubjectInfo:
    subject_id: str
    group_ids: tuple[str, ...]
    code: str | None = None

    @property
    def label(self) -> str:
        return self.code or self.subject_id


@dataclass(frozen=True)
class GenerationRequest:
    start_date: date
    end_date: date
    daily_slots: tuple[DailySlot, ...]
    include_weekends: bool = False
    min_supervisors: int = 1
    intent_kind: IntentKind = IntentKind.main_exam


@dataclass(frozen=True)
class UnscheduledSubject:
    subject_id: str
    reason: str
    kind: ConflictKind | None = None


@dataclass
class GenerationResult:
    scheduled: list[BookedSession] = field(default_factory=list)
    unscheduled: list[UnscheduledSubject] = field(default_factory=list)
    cancelled: bool = False
    candidate_interval_count: int = 0


def expand_candidate_intervals(
    start_date: date,
    end_date: date,
    daily_slots: Sequence[DailySlot],
    include_weekends: bool = False,
) -> list[TimeInterval]:
    slots = sorted(daily_slots, key=lambda item: (item.start, item.end))
    intervals: list[TimeInterval] = []
    current = start_date
    while current <= end_date:
        if include_weekends or current.weekday() not in WEEKEND_DAYS:
            intervals.extend(TimeInterval(current, slot.start, slot.end) for slot in slots)
        current += timedelta(days=1)
    return intervals


def generated_session_id(subject_id: str, interval: TimeInterval) -> str:
    key = f"{subject_id}|{interval.date.isoformat()}|{format_clock(interval.start)}|{format_clock(interval.end)}"
    return str(uuid.uuid5(GENERATED_SESSION_NAMESPACE, key))


class ScheduleGenerator:
    def __init__(self, checker: ConflictChecker, subjects: Mapping[str, SubjectInfo]) -> None:
        self.checker = checker
        self.subjects = subjects
        self.staff_ids = sorted(checker.profiles)

    def subject_order(self) -> list[SubjectInfo]:
        # Constraint weight is the number of distinct groups sitting the exam.
        return sorted(
            self.subjects.values(),
            key=lambda item: (-len(set(item.group_ids)), item.subject_id),
        )

    def generate(
        self,
        request: GenerationRequest,
        should_stop: Callable[[], bool] | None = None,
    ) -> GenerationResult:
        started = perf_counter()
        intervals = expand_candidate_intervals(
            request.start_date,
            request.end_date,
            request.daily_slots,
            request.include_weekends,
        )
        result = GenerationResult(candidate_interval_count=len(intervals))
        logger.info(
            "SCHEDULE GENERATION START | start=%s | end=%s | slots=%s | intervals=%s | subjects=%s",
            request.start_date,
            request.end_date,
            len(request.daily_slots),
            len(intervals),
            len(self.subjects),
        )

        working = self.checker
        ordered = self.subject_order()
        for position, subject in enumerate(ordered):
            if should_stop is not None and should_stop():
                result.cancelled = True
                result.unscheduled.extend(
                    UnscheduledSubject(item.subject_id, "Generation cancelled before this subject was considered")
                    for item in ordered[position:]
                )
                logger.warning(
                    "SCHEDULE GENERATION CANCELLED | scheduled=%s | remaining=%s",
                    len(result.scheduled),
                    len(ordered) - position,
                )
                break

            placed = self._place_subject(subject, intervals, working, request)
            if isinstance(placed, UnscheduledSubject):
                result.unscheduled.append(placed)
                continue
            result.scheduled.append(placed)
            working = working.with_ledger(working.ledger.with_sessions([placed]))

        logger.info(
            "SCHEDULE GENERATION COMPLETE | scheduled=%s | unscheduled=%s | cancelled=%s | runtime_ms=%s",
            len(result.scheduled),
            len(result.unscheduled),
            result.cancelled,
            int((perf_counter() - started) * 1000),
        )
        return result

    def _place_subject(
        self,
        subject: SubjectInfo,
        intervals: Sequence[TimeInterval],
        checker: ConflictChecker,
        request: GenerationRequest,
    ) -> BookedSession | UnscheduledSubject:
        group_ids = tuple(dict.fromkeys(subject.group_ids))
        if not group_ids:
            return UnscheduledSubject(
                subject.subject_id,
                f"No groups are registered for subject {subject.label}",
                ConflictKind.incomplete_session,
            )
        missing = [group_id for group_id in group_ids if group_id not in checker.groups]
        if missing:
            return UnscheduledSubject(
                subject.subject_id,
                f"Group {missing[0]} required by subject {subject.label} not found",
                ConflictKind.resource_not_found,
            )

        required = sum(checker.groups[group_id].size for group_id in group_ids)
        rooms = sorted(
            (room for room in checker.rooms.values() if room.capacity >= required),
            key=lambda room: (room.capacity, room.room_id),
        )
        if not rooms:
            largest = max((room.capacity for room in checker.rooms.values()), default=0)
            return UnscheduledSubject(
                subject.subject_id,
                f"No room can seat {required} students for subject {subject.label} (largest capacity {largest})",
                ConflictKind.capacity_exceeded,
            )
        if not intervals:
            return UnscheduledSubject(
                subject.subject_id,
                "No candidate time slots fall inside the requested date range",
            )

        first_failure: CheckResult | None = None
        for interval in intervals:
            failure = self._first_group_failure(checker, group_ids, interval)
            room_id: str | None = None
            supervisors: list[str] = []
            if failure is None:
                room_id, failure = self._pick_room(checker, rooms, interval)
            if failure is None:
                supervisors, failure = self._pick_supervisors(checker, interval, request.min_supervisors)
            if failure is not None:
                if first_failure is None:
                    first_failure = failure
                continue

            return BookedSession(
                session_id=generated_session_id(subject.subject_id, interval),
                subject_id=subject.subject_id,
                interval=interval,
                room_id=room_id,
                group_ids=frozenset(group_ids),
                supervisor_ids=frozenset(supervisors),
                intent_kind=request.intent_kind,
            )

        return UnscheduledSubject(
            subject.subject_id,
            f"No slot satisfies every constraint for subject {subject.label}: {first_failure.reason}",
            first_failure.kind,
        )

    @staticmethod
    def _first_group_failure(
        checker: ConflictChecker,
        group_ids: Sequence[str],
        interval: TimeInterval,
    ) -> CheckResult | None:
        for group_id in group_ids:
            outcome = checker.group_available(group_id, interval)
            if not outcome.ok:
                return outcome
        return None

    @staticmethod
    def _pick_room(checker: ConflictChecker, rooms, interval: TimeInterval) -> tuple[str | None, CheckResult | None]:
        # Smallest sufficient room first keeps large rooms free for large cohorts.
        first_failure: CheckResult | None = None
        for room in rooms:
            outcome = checker.room_available(room.room_id, interval)
            if outcome.ok:
                return room.room_id, None
            if first_failure is None:
                first_failure = outcome
        return None, first_failure

    def _pick_supervisors(
        self,
        checker: ConflictChecker,
        interval: TimeInterval,
        wanted: int,
    ) -> tuple[list[str], CheckResult | None]:
        available: list[str] = []
        first_failure: CheckResult | None = None
        for staff_id in self.staff_ids:
            outcome = checker.staff_available(staff_id, interval)
            if outcome.ok:
                available.append(staff_id)
            elif first_failure is None:
                first_failure = outcome
        if not available:
            if first_failure is None:
                first_failure = CheckResult.failed(
                    ConflictKind.availability_denied,
                    "No staff members are registered to supervise",
                )
            return [], CheckResult.failed(
                first_failure.kind or ConflictKind.availability_denied,
                f"No supervisor is free at {interval.label()} ({first_failure.reason})",
                **first_failure.details,
            )

        week_start, week_end = weekly_window(interval.date)
        by_load = sorted(
            available,
            key=lambda staff_id: (checker.ledger.supervision_counts(staff_id, week_start, week_end), staff_id),
        )
        return by_load[: max(1, wanted)], None
