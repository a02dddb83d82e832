from datetime import date, time

import pytest

from examforge.services.availability import AvailabilityProfile, WeeklyAvailabilityRule
from examforge.services.batch_validator import BatchValidator, CandidateSession
from examforge.services.conflict_service import ConflictChecker, ConflictKind, GroupInfo, RoomInfo
from examforge.services.intervals import TimeInterval, Weekday
from examforge.services.ledger import BookedSession, BookingLedger

TUESDAY = date(2024, 3, 5)


def candidate(start="09:00", end="11:00", *, room="r1", groups=("g1",), staff=("s1",), subject="math", **extra):
    hours_start, minutes_start = (int(part) for part in start.split(":"))
    hours_end, minutes_end = (int(part) for part in end.split(":"))
    return CandidateSession(
        subject_id=subject,
        date=TUESDAY,
        start=time(hours_start, minutes_start),
        end=time(hours_end, minutes_end),
        room_id=room,
        group_ids=tuple(groups),
        supervisor_ids=tuple(staff),
        **extra,
    )


@pytest.fixture
def validator():
    all_day = (WeeklyAvailabilityRule(Weekday.tuesday, time(8, 0), time(18, 0)),)
    profiles = {
        staff_id: AvailabilityProfile(staff_id=staff_id, weekly_rules=all_day) for staff_id in ("s1", "s2", "s3")
    }
    rooms = {"r1": RoomInfo("r1", 40), "r2": RoomInfo("r2", 40), "r3": RoomInfo("r3", 10)}
    groups = {"g1": GroupInfo("g1", 20), "g2": GroupInfo("g2", 15), "g3": GroupInfo("g3", 25)}
    ledger = BookingLedger.from_sessions(
        [
            BookedSession(
                session_id="committed",
                subject_id="physics",
                interval=TimeInterval.parse(TUESDAY, "14:00", "16:00"),
                room_id="r2",
                group_ids=frozenset({"g3"}),
                supervisor_ids=frozenset({"s3"}),
            )
        ]
    )
    return BatchValidator(ConflictChecker(ledger, profiles, rooms, groups))


def test_non_atomic_same_room_accepts_first_and_rejects_second(validator):
    result = validator.validate(
        [candidate(), candidate("10:00", "12:00", groups=("g2",), staff=("s2",), subject="chem")],
        atomic=False,
    )
    assert [index for index, _ in result.accepted] == [0]
    assert result.success_count == 1
    assert result.failure_count == 1
    rejected = result.rejected[0]
    assert rejected.index == 1
    assert rejected.issues[0].kind == ConflictKind.batch_internal_conflict
    assert rejected.issues[0].details["resource_kind"] == "room"
    assert rejected.issues[0].details["first_index"] == 0
    assert rejected.issues[0].details["second_index"] == 1


def test_atomic_same_room_rejects_both(validator):
    result = validator.validate(
        [candidate(), candidate("10:00", "12:00", groups=("g2",), staff=("s2",), subject="chem")],
        atomic=True,
    )
    assert result.accepted == []
    assert [item.index for item in result.rejected] == [0, 1]
    assert all(item.issues[0].kind == ConflictKind.batch_internal_conflict for item in result.rejected)


def test_room_is_reported_before_supervisor_and_group(validator):
    result = validator.validate([candidate(), candidate("10:00", "12:00", subject="chem")])
    assert result.rejected[0].issues[0].details["resource_kind"] == "room"


def test_supervisor_is_reported_before_group(validator):
    result = validator.validate([candidate(), candidate("10:00", "12:00", room="r2", subject="chem")])
    details = result.rejected[0].issues[0].details
    assert details["resource_kind"] == "staff"
    assert details["resource_id"] == "s1"


def test_shared_group_is_reported(validator):
    result = validator.validate([candidate(), candidate("10:00", "12:00", room="r2", staff=("s2",), subject="chem")])
    details = result.rejected[0].issues[0].details
    assert details["resource_kind"] == "group"
    assert details["resource_id"] == "g1"


def test_non_overlapping_candidates_sharing_everything_are_fine(validator):
    result = validator.validate([candidate(), candidate("11:00", "13:00", subject="chem")], atomic=True)
    assert result.all_accepted
    assert result.success_count == 2


def test_candidates_are_checked_against_the_ledger(validator):
    result = validator.validate([candidate("15:00", "17:00", room="r2", groups=("g1",), staff=("s1",))])
    issue = result.rejected[0].issues[0]
    assert issue.kind == ConflictKind.booking_conflict
    assert issue.details["conflicting_session_id"] == "committed"


def test_capacity_and_availability_are_checked(validator):
    result = validator.validate(
        [
            candidate(room="r3", groups=("g1",)),
            candidate("17:00", "19:00", room="r2", groups=("g2",), staff=("s2",), subject="chem"),
        ]
    )
    kinds = {item.index: {issue.kind for issue in item.issues} for item in result.rejected}
    assert kinds[0] == {ConflictKind.capacity_exceeded}
    assert kinds[1] == {ConflictKind.availability_denied}


def test_rejected_earlier_candidate_does_not_block_later_ones(validator):
    result = validator.validate(
        [
            candidate(room="r3", groups=("g1",)),
            candidate("10:00", "12:00", room="r3", groups=("g2",), staff=("s2",), subject="chem"),
        ]
    )
    assert [item.index for item in result.rejected] == [0, 1]
    assert all(
        issue.kind != ConflictKind.batch_internal_conflict for item in result.rejected for issue in item.issues
    )


def test_atomic_batch_aborts_innocent_items(validator):
    result = validator.validate(
        [candidate(), candidate(room="r3", groups=("g2",), staff=("s2",), subject="chem")],
        atomic=True,
    )
    by_index = {item.index: item for item in result.rejected}
    assert by_index[0].issues[0].kind == ConflictKind.batch_aborted
    assert by_index[0].issues[0].details["failing_indices"] == [1]
    assert by_index[1].issues[0].kind == ConflictKind.capacity_exceeded


def test_shape_errors_are_reported_without_raising(validator):
    result = validator.validate(
        [
            candidate("11:00", "09:00"),
            candidate("12:00", "13:00", groups=(), staff=()),
        ]
    )
    first = [issue.kind for issue in result.rejected[0].issues]
    second = [issue.reason for issue in result.rejected[1].issues]
    assert first == [ConflictKind.invalid_interval]
    assert second == ["At least one group is required", "At least one supervisor is required"]


def test_edited_session_is_excluded_from_its_own_checks(validator):
    moved = candidate("15:00", "16:00", room="r2", groups=("g3",), staff=("s3",), session_id="committed")
    assert validator.validate([moved], atomic=True).all_accepted
