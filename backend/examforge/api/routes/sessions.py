import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from examforge.api.deps import get_db, get_now
from examforge.core.config import get_settings
from examforge.core.exceptions import SessionRejectedError
from examforge.models.exam_session import ExamSession
from examforge.schemas.common import CheckResultOut
from examforge.schemas.session import (
    AcceptedSessionOut,
    RejectedSessionOut,
    SessionBatchRequest,
    SessionBatchResponse,
    SessionCreate,
    SessionOut,
    SessionStatusOut,
    SessionUpdate,
)
from examforge.services.batch_validator import BatchValidationResult, CandidateSession
from examforge.services.intervals import InvalidIntervalError, parse_clock
from examforge.services.session_status import LifecycleStatus, ResolvedStatus, resolve_session
from examforge.services.session_store import (
    cancel_session,
    commit_candidates,
    delete_session,
    get_session_or_404,
    update_session,
)
from examforge.services.snapshot import booking_from_row

router = APIRouter()
logger = logging.getLogger(__name__)

settings = get_settings()

UPDATE_FIELD_MAP = {
    "subject_id": "subject_id",
    "session_date": "date",
    "room_id": "room_id",
    "intent_kind": "intent_kind",
    "notes": "notes",
}


def _resolve(row: ExamSession, now: datetime) -> ResolvedStatus:
    try:
        booking = booking_from_row(row)
    except (InvalidIntervalError, ValueError):
        logger.warning("Session %s has an unreadable interval; reporting it as scheduled", row.id)
        return ResolvedStatus(LifecycleStatus.scheduled, row.intent_kind)
    return resolve_session(booking, now)


def session_out(row: ExamSession, now: datetime) -> SessionOut:
    resolved = _resolve(row, now)
    return SessionOut(
        id=row.id,
        subject_id=row.subject_id,
        session_date=row.session_date,
        start_time=row.start_time,
        end_time=row.end_time,
        room_id=row.room_id,
        group_ids=list(row.group_ids or []),
        supervisor_ids=list(row.supervisor_ids or []),
        intent_kind=resolved.intent_kind,
        status=resolved.status,
        notes=row.notes,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def to_candidate(payload: SessionCreate) -> CandidateSession:
    return CandidateSession(
        subject_id=payload.subject_id,
        date=payload.session_date,
        start=parse_clock(payload.start_time),
        end=parse_clock(payload.end_time),
        room_id=payload.room_id,
        group_ids=tuple(payload.group_ids),
        supervisor_ids=tuple(payload.supervisor_ids),
        intent_kind=payload.intent_kind,
        notes=payload.notes,
    )


def _issues(result: BatchValidationResult) -> list[dict]:
    return [
        CheckResultOut.from_result(issue).model_dump(mode="json")
        for rejected in result.rejected
        for issue in rejected.issues
    ]


@router.get("/sessions", response_model=list[SessionOut])
def list_sessions(
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    room_id: str | None = Query(default=None, max_length=36),
    staff_id: str | None = Query(default=None, max_length=36),
    group_id: str | None = Query(default=None, max_length=36),
    include_cancelled: bool = Query(default=True),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
) -> list[SessionOut]:
    query = select(ExamSession).order_by(ExamSession.session_date, ExamSession.start_time, ExamSession.id)
    if date_from is not None:
        query = query.where(ExamSession.session_date >= date_from)
    if date_to is not None:
        query = query.where(ExamSession.session_date <= date_to)
    if room_id is not None:
        query = query.where(ExamSession.room_id == room_id)
    rows = list(db.execute(query).scalars())
    # JSON list membership is filtered in Python to stay portable across SQLite and PostgreSQL.
    if staff_id is not None:
        rows = [row for row in rows if staff_id in (row.supervisor_ids or [])]
    if group_id is not None:
        rows = [row for row in rows if group_id in (row.group_ids or [])]
    items = [session_out(row, now) for row in rows]
    if not include_cancelled:
        items = [item for item in items if item.status != LifecycleStatus.cancelled]
    return items


@router.get("/sessions/{session_id}", response_model=SessionOut)
def get_session(session_id: str, now: datetime = Depends(get_now), db: Session = Depends(get_db)) -> SessionOut:
    return session_out(get_session_or_404(db, session_id), now)


@router.get("/sessions/{session_id}/status", response_model=SessionStatusOut)
def get_session_status(
    session_id: str,
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
) -> SessionStatusOut:
    resolved = _resolve(get_session_or_404(db, session_id), now)
    return SessionStatusOut(session_id=session_id, status=resolved.status, intent_kind=resolved.intent_kind, now=now)


@router.post("/sessions", response_model=SessionOut, status_code=status.HTTP_201_CREATED)
def create_session(
    payload: SessionCreate,
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
) -> SessionOut:
    result, rows = commit_candidates(db, [to_candidate(payload)], atomic=True)
    if not result.all_accepted:
        raise SessionRejectedError(result.rejected[0].reason, _issues(result))
    return session_out(rows[0], now)


@router.post("/sessions/batch", response_model=SessionBatchResponse)
def create_sessions_batch(
    payload: SessionBatchRequest,
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
) -> SessionBatchResponse:
    if len(payload.sessions) > settings.batch_max_size:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"A batch may contain at most {settings.batch_max_size} sessions",
        )
    candidates = [to_candidate(item) for item in payload.sessions]
    result, rows = commit_candidates(db, candidates, atomic=payload.atomic, dry_run=payload.dry_run)

    accepted: list[AcceptedSessionOut] = []
    if payload.dry_run:
        accepted = [AcceptedSessionOut(index=index) for index, _ in result.accepted]
    else:
        accepted = [
            AcceptedSessionOut(index=index, session=session_out(row, now))
            for (index, _), row in zip(result.accepted, rows)
        ]
    return SessionBatchResponse(
        atomic=payload.atomic,
        dry_run=payload.dry_run,
        success_count=result.success_count,
        failure_count=result.failure_count,
        accepted=accepted,
        rejected=[
            RejectedSessionOut(
                index=item.index,
                reason=item.reason,
                issues=[CheckResultOut.from_result(issue) for issue in item.issues],
            )
            for item in result.rejected
        ],
    )


@router.put("/sessions/{session_id}", response_model=SessionOut)
def edit_session(
    session_id: str,
    payload: SessionUpdate,
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
) -> SessionOut:
    data = payload.model_dump(exclude_unset=True)
    for required in ("subject_id", "session_date", "start_time", "end_time", "room_id", "intent_kind"):
        if required in data and data[required] is None:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"{required} cannot be null")
    changes = {UPDATE_FIELD_MAP[key]: value for key, value in data.items() if key in UPDATE_FIELD_MAP}
    if "start_time" in data:
        changes["start"] = parse_clock(data["start_time"])
    if "end_time" in data:
        changes["end"] = parse_clock(data["end_time"])
    if "group_ids" in data:
        changes["group_ids"] = tuple(data["group_ids"] or ())
    if "supervisor_ids" in data:
        changes["supervisor_ids"] = tuple(data["supervisor_ids"] or ())
    result, row = update_session(db, session_id, changes)
    if not result.all_accepted:
        raise SessionRejectedError(result.rejected[0].reason, _issues(result))
    return session_out(row, now)


@router.post("/sessions/{session_id}/cancel", response_model=SessionOut)
def cancel_exam_session(
    session_id: str,
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
) -> SessionOut:
    return session_out(cancel_session(db, session_id), now)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_exam_session(session_id: str, db: Session = Depends(get_db)) -> Response:
    delete_session(db, session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
