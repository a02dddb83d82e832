from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from examforge.api.deps import get_db
from examforge.schemas.availability import (
    AvailabilityCheckOut,
    AvailabilityCheckRequest,
    GroupAvailabilityItem,
    RoomAvailabilityItem,
    StaffAvailabilityItem,
)
from examforge.schemas.common import CheckResultOut
from examforge.services.conflict_service import CheckResult, ConflictKind
from examforge.services.intervals import CLOCK_PATTERN, InvalidIntervalError, TimeInterval, parse_clock
from examforge.services.ledger import ResourceKind
from examforge.services.snapshot import load_snapshot
from examforge.services.workload import supervision_load, weekly_window

router = APIRouter()


@router.post("/availability/check", response_model=AvailabilityCheckOut)
def check_availability(payload: AvailabilityCheckRequest, db: Session = Depends(get_db)) -> AvailabilityCheckOut:
    snapshot = load_snapshot(db, date_from=payload.date, date_to=payload.date)
    result = snapshot.checker().check_raw(
        payload.resource_kind,
        payload.resource_id,
        payload.date,
        parse_clock(payload.start_time),
        parse_clock(payload.end_time),
        payload.exclude_session_id,
    )
    return AvailabilityCheckOut(
        **CheckResultOut.from_result(result).model_dump(),
        resource_kind=payload.resource_kind,
        resource_id=payload.resource_id,
    )


class IntervalQuery:
    def __init__(
        self,
        day: date = Query(alias="date"),
        start_time: str = Query(pattern=CLOCK_PATTERN.pattern),
        end_time: str = Query(pattern=CLOCK_PATTERN.pattern),
        exclude_session_id: str | None = Query(default=None, max_length=36),
    ) -> None:
        self.day = day
        self.start_time = start_time
        self.end_time = end_time
        self.exclude_session_id = exclude_session_id

    def interval(self) -> TimeInterval | CheckResult:
        try:
            return TimeInterval(self.day, parse_clock(self.start_time), parse_clock(self.end_time))
        except InvalidIntervalError as exc:
            return CheckResult.failed(ConflictKind.invalid_interval, str(exc))


def _fields(result: CheckResult) -> dict:
    return CheckResultOut.from_result(result).model_dump()


@router.get("/availability/staff", response_model=list[StaffAvailabilityItem])
def list_staff_availability(
    query: IntervalQuery = Depends(),
    db: Session = Depends(get_db),
) -> list[StaffAvailabilityItem]:
    week_start, week_end = weekly_window(query.day)
    snapshot = load_snapshot(db, date_from=week_start, date_to=week_end)
    checker = snapshot.checker()
    interval = query.interval()
    items: list[StaffAvailabilityItem] = []
    for staff_id, profile in sorted(snapshot.profiles.items(), key=lambda item: (item[1].label, item[0])):
        if isinstance(interval, CheckResult):
            result, daily, weekly = interval, 0, 0
        else:
            result = checker.staff_available(staff_id, interval, query.exclude_session_id)
            daily, weekly = supervision_load(snapshot.ledger, staff_id, interval.date, query.exclude_session_id)
        items.append(
            StaffAvailabilityItem(
                **_fields(result),
                resource_kind=ResourceKind.staff,
                resource_id=staff_id,
                name=profile.label,
                daily_sessions=daily,
                weekly_sessions=weekly,
            )
        )
    # Free staff first, least loaded first, the way supervisor dropdowns are filled.
    items.sort(key=lambda item: (not item.ok, item.weekly_sessions, item.name))
    return items


@router.get("/availability/rooms", response_model=list[RoomAvailabilityItem])
def list_room_availability(
    query: IntervalQuery = Depends(),
    min_capacity: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
) -> list[RoomAvailabilityItem]:
    snapshot = load_snapshot(db, date_from=query.day, date_to=query.day)
    checker = snapshot.checker()
    interval = query.interval()
    items: list[RoomAvailabilityItem] = []
    for room in sorted(snapshot.rooms.values(), key=lambda item: (item.capacity, item.label)):
        if min_capacity is not None and room.capacity < min_capacity:
            continue
        result = interval if isinstance(interval, CheckResult) else checker.room_available(
            room.room_id, interval, query.exclude_session_id
        )
        items.append(
            RoomAvailabilityItem(
                **_fields(result),
                resource_kind=ResourceKind.room,
                resource_id=room.room_id,
                name=room.label,
                capacity=room.capacity,
            )
        )
    return items


@router.get("/availability/groups", response_model=list[GroupAvailabilityItem])
def list_group_availability(
    query: IntervalQuery = Depends(),
    db: Session = Depends(get_db),
) -> list[GroupAvailabilityItem]:
    snapshot = load_snapshot(db, date_from=query.day, date_to=query.day)
    checker = snapshot.checker()
    interval = query.interval()
    items: list[GroupAvailabilityItem] = []
    for group in sorted(snapshot.groups.values(), key=lambda item: item.label):
        result = interval if isinstance(interval, CheckResult) else checker.group_available(
            group.group_id, interval, query.exclude_session_id
        )
        items.append(
            GroupAvailabilityItem(
                **_fields(result),
                resource_kind=ResourceKind.group,
                resource_id=group.group_id,
                name=group.label,
                size=group.size,
            )
        )
    return items
