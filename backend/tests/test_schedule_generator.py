from datetime import date, time

import pytest

from examforge.services.availability import AvailabilityProfile, DateOverride, WeeklyAvailabilityRule
from examforge.services.conflict_service import ConflictChecker, ConflictKind, GroupInfo, RoomInfo
from examforge.services.intervals import TimeInterval, Weekday
from examforge.services.ledger import BookedSession, BookingLedger
from examforge.services.schedule_generator import (
    DailySlot,
    GenerationRequest,
    ScheduleGenerator,
    SubjectInfo,
    expand_candidate_intervals,
    generated_session_id,
)

MONDAY = date(2024, 3, 4)
TUESDAY = date(2024, 3, 5)
MORNING = DailySlot(time(9, 0), time(11, 0))
AFTERNOON = DailySlot(time(14, 0), time(16, 0))


def all_week(staff_id: str, **extra) -> AvailabilityProfile:
    return AvailabilityProfile(
        staff_id=staff_id,
        weekly_rules=tuple(WeeklyAvailabilityRule(day, time(8, 0), time(18, 0)) for day in Weekday),
        **extra,
    )


def make_generator(*, subjects, rooms=None, groups=None, profiles=None, ledger=None):
    checker = ConflictChecker(
        ledger or BookingLedger(),
        profiles if profiles is not None else {"s1": all_week("s1")},
        rooms if rooms is not None else {"r1": RoomInfo("r1", 40)},
        groups if groups is not None else {"g1": GroupInfo("g1", 25)},
    )
    return ScheduleGenerator(checker, {item.subject_id: item for item in subjects})


def request(start=MONDAY, end=TUESDAY, slots=(MORNING,), **extra) -> GenerationRequest:
    return GenerationRequest(start_date=start, end_date=end, daily_slots=tuple(slots), **extra)


def test_shared_group_pushes_second_subject_to_next_day():
    generator = make_generator(
        subjects=[SubjectInfo("algebra", ("g1",)), SubjectInfo("biology", ("g1",))],
    )
    result = generator.generate(request())

    assert result.unscheduled == []
    placed = {item.subject_id: item.interval for item in result.scheduled}
    assert placed["algebra"] == TimeInterval(MONDAY, time(9, 0), time(11, 0))
    assert placed["biology"] == TimeInterval(TUESDAY, time(9, 0), time(11, 0))


def test_weekends_are_skipped_unless_requested():
    saturday, sunday = date(2024, 3, 9), date(2024, 3, 10)
    assert expand_candidate_intervals(saturday, sunday, [MORNING]) == []
    with_weekend = expand_candidate_intervals(saturday, sunday, [MORNING], include_weekends=True)
    assert [item.date for item in with_weekend] == [saturday, sunday]


def test_candidate_intervals_are_chronological():
    intervals = expand_candidate_intervals(MONDAY, TUESDAY, [AFTERNOON, MORNING])
    assert intervals == sorted(intervals)
    assert len(intervals) == 4


def test_most_constrained_subject_goes_first():
    generator = make_generator(
        subjects=[
            SubjectInfo("a-small", ("g1",)),
            SubjectInfo("z-large", ("g1", "g2")),
        ],
        groups={"g1": GroupInfo("g1", 10), "g2": GroupInfo("g2", 10)},
    )
    assert [item.subject_id for item in generator.subject_order()] == ["z-large", "a-small"]
    result = generator.generate(request())
    assert result.scheduled[0].subject_id == "z-large"
    assert result.scheduled[0].interval.date == MONDAY


def test_smallest_sufficient_room_is_chosen():
    generator = make_generator(
        subjects=[SubjectInfo("algebra", ("g1",))],
        rooms={"big": RoomInfo("big", 200), "fit": RoomInfo("fit", 30), "tiny": RoomInfo("tiny", 10)},
    )
    result = generator.generate(request())
    assert result.scheduled[0].room_id == "fit"


def test_larger_room_is_used_when_the_smallest_is_taken():
    taken = BookedSession(
        session_id="x",
        subject_id="other",
        interval=TimeInterval(MONDAY, time(9, 0), time(11, 0)),
        room_id="fit",
        group_ids=frozenset({"gx"}),
        supervisor_ids=frozenset({"sx"}),
    )
    generator = make_generator(
        subjects=[SubjectInfo("algebra", ("g1",))],
        rooms={"big": RoomInfo("big", 200), "fit": RoomInfo("fit", 30)},
        ledger=BookingLedger.from_sessions([taken]),
    )
    result = generator.generate(request())
    assert result.scheduled[0].room_id == "big"
    assert result.scheduled[0].interval.date == MONDAY


def test_supervisors_are_load_balanced():
    existing = BookedSession(
        session_id="x",
        subject_id="other",
        interval=TimeInterval(MONDAY, time(14, 0), time(16, 0)),
        room_id="r9",
        group_ids=frozenset({"g9"}),
        supervisor_ids=frozenset({"s1"}),
    )
    generator = make_generator(
        subjects=[SubjectInfo("algebra", ("g1",)), SubjectInfo("biology", ("g2",))],
        groups={"g1": GroupInfo("g1", 10), "g2": GroupInfo("g2", 10)},
        rooms={"r1": RoomInfo("r1", 40), "r2": RoomInfo("r2", 40)},
        profiles={"s1": all_week("s1"), "s2": all_week("s2"), "s3": all_week("s3")},
        ledger=BookingLedger.from_sessions([existing]),
    )
    result = generator.generate(request(min_supervisors=2))
    supervisors = {item.subject_id: item.supervisor_ids for item in result.scheduled}
    assert supervisors["algebra"] == frozenset({"s2", "s3"})
    # s2 and s3 are busy with algebra in the same slot.
    assert supervisors["biology"] == frozenset({"s1"})


def test_unschedulable_subjects_carry_reasons():
    generator = make_generator(
        subjects=[
            SubjectInfo("crowded", ("g1", "g2")),
            SubjectInfo("orphan", ()),
            SubjectInfo("ghost", ("missing",)),
        ],
        groups={"g1": GroupInfo("g1", 30), "g2": GroupInfo("g2", 30)},
    )
    result = generator.generate(request())
    reasons = {item.subject_id: item for item in result.unscheduled}

    assert result.scheduled == []
    assert reasons["crowded"].kind == ConflictKind.capacity_exceeded
    assert "No room can seat 60 students" in reasons["crowded"].reason
    assert reasons["orphan"].kind == ConflictKind.incomplete_session
    assert reasons["ghost"].kind == ConflictKind.resource_not_found


def test_subject_without_any_free_supervisor_reports_first_failure():
    blocked = all_week(
        "s1",
        overrides=(
            DateOverride(MONDAY, time(8, 0), time(18, 0), False, "Conference"),
            DateOverride(TUESDAY, time(8, 0), time(18, 0), False, "Conference"),
        ),
    )
    generator = make_generator(subjects=[SubjectInfo("algebra", ("g1",))], profiles={"s1": blocked})
    result = generator.generate(request())
    item = result.unscheduled[0]
    assert item.kind == ConflictKind.availability_denied
    assert "No slot satisfies every constraint for subject algebra" in item.reason
    assert "Conference" in item.reason


def test_empty_range_leaves_subjects_unscheduled():
    saturday = date(2024, 3, 9)
    generator = make_generator(subjects=[SubjectInfo("algebra", ("g1",))])
    result = generator.generate(request(start=saturday, end=saturday))
    assert result.candidate_interval_count == 0
    assert result.unscheduled[0].subject_id == "algebra"


def test_generation_is_deterministic_and_does_not_touch_the_input_ledger():
    ledger = BookingLedger()
    subjects = [SubjectInfo("algebra", ("g1",)), SubjectInfo("biology", ("g1",))]
    first = make_generator(subjects=subjects, ledger=ledger).generate(request())
    second = make_generator(subjects=subjects, ledger=ledger).generate(request())

    assert first.scheduled == second.scheduled
    assert len(ledger) == 0
    assert first.scheduled[0].session_id == generated_session_id("algebra", first.scheduled[0].interval)


def test_cancellation_returns_partial_results():
    calls = {"count": 0}

    def should_stop() -> bool:
        calls["count"] += 1
        return calls["count"] > 1

    generator = make_generator(
        subjects=[SubjectInfo("algebra", ("g1",)), SubjectInfo("biology", ("g1",))],
    )
    result = generator.generate(request(), should_stop=should_stop)
    assert result.cancelled
    assert [item.subject_id for item in result.scheduled] == ["algebra"]
    assert [item.subject_id for item in result.unscheduled] == ["biology"]


@pytest.mark.parametrize("min_supervisors", [0, 1])
def test_at_least_one_supervisor_is_assigned(min_supervisors):
    generator = make_generator(
        subjects=[SubjectInfo("algebra", ("g1",))],
        profiles={"s1": all_week("s1"), "s2": all_week("s2")},
    )
    result = generator.generate(request(min_supervisors=min_supervisors))
    assert len(result.scheduled[0].supervisor_ids) == 1
