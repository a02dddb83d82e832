import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from examforge.api.deps import get_db
from examforge.core.exceptions import InfrastructureError, ResourceNotFoundError
from examforge.models.staff import Staff, StaffDateOverride
from examforge.schemas.staff import (
    AvailabilityWindow,
    DateOverrideCreate,
    DateOverrideOut,
    StaffAvailabilityOut,
    StaffAvailabilityUpdate,
)
from examforge.services.availability import find_rule_overlaps
from examforge.services.intervals import Weekday, format_clock
from examforge.services.snapshot import weekly_rules_from_windows

router = APIRouter()
logger = logging.getLogger(__name__)

DAY_ORDER = [day.value for day in Weekday]


def _get_staff(db: Session, staff_id: str) -> Staff:
    staff = db.get(Staff, staff_id)
    if staff is None:
        raise ResourceNotFoundError("Staff member", staff_id)
    return staff


def _availability_out(db: Session, staff: Staff) -> StaffAvailabilityOut:
    overrides = db.execute(
        select(StaffDateOverride)
        .where(StaffDateOverride.staff_id == staff.id)
        .order_by(StaffDateOverride.override_date, StaffDateOverride.start_time)
    ).scalars()
    return StaffAvailabilityOut(
        staff_id=staff.id,
        name=staff.name,
        availability_windows=[AvailabilityWindow.model_validate(item) for item in staff.availability_windows or []],
        overrides=[DateOverrideOut.model_validate(item) for item in overrides],
    )


def _commit(db: Session, action: str, staff_id: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("%s FAILED | staff_id=%s", action, staff_id)
        raise InfrastructureError() from exc


@router.get("/staff/{staff_id}/availability", response_model=StaffAvailabilityOut)
def get_staff_availability(staff_id: str, db: Session = Depends(get_db)) -> StaffAvailabilityOut:
    return _availability_out(db, _get_staff(db, staff_id))


@router.put("/staff/{staff_id}/availability", response_model=StaffAvailabilityOut)
def replace_staff_availability(
    staff_id: str,
    payload: StaffAvailabilityUpdate,
    db: Session = Depends(get_db),
) -> StaffAvailabilityOut:
    staff = _get_staff(db, staff_id)
    windows = [item.model_dump() for item in payload.availability_windows]
    clashes = find_rule_overlaps(weekly_rules_from_windows(windows))
    if clashes:
        first, second = clashes[0]
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=(
                f"Availability windows overlap on {first.day.value}: "
                f"{format_clock(first.start)}-{format_clock(first.end)} and "
                f"{format_clock(second.start)}-{format_clock(second.end)}"
            ),
        )

    staff.availability_windows = sorted(
        windows,
        key=lambda item: (DAY_ORDER.index(item["day"]), item["start_time"]),
    )
    _commit(db, "STAFF AVAILABILITY UPDATE", staff_id)
    db.refresh(staff)
    logger.info("STAFF AVAILABILITY UPDATED | staff_id=%s | windows=%s", staff_id, len(windows))
    return _availability_out(db, staff)


@router.post(
    "/staff/{staff_id}/overrides",
    response_model=DateOverrideOut,
    status_code=status.HTTP_201_CREATED,
)
def create_date_override(
    staff_id: str,
    payload: DateOverrideCreate,
    db: Session = Depends(get_db),
) -> StaffDateOverride:
    _get_staff(db, staff_id)
    override = StaffDateOverride(
        staff_id=staff_id,
        override_date=payload.override_date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        available=payload.available,
        reason=payload.reason.strip(),
    )
    db.add(override)
    _commit(db, "DATE OVERRIDE CREATE", staff_id)
    db.refresh(override)
    logger.info(
        "DATE OVERRIDE CREATED | staff_id=%s | date=%s | available=%s",
        staff_id,
        payload.override_date,
        payload.available,
    )
    return override


@router.delete("/staff/{staff_id}/overrides/{override_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_date_override(staff_id: str, override_id: str, db: Session = Depends(get_db)) -> Response:
    override = db.get(StaffDateOverride, override_id)
    if override is None or override.staff_id != staff_id:
        raise ResourceNotFoundError("Date override", override_id)
    db.delete(override)
    _commit(db, "DATE OVERRIDE DELETE", staff_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
