"""Commit boundary between the engine and the database.

Every write re-reads the ledger and re-validates inside the same
transaction while holding ``_COMMIT_LOCK``, so two requests validated
against the same stale snapshot cannot both commit overlapping bookings
from this process.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from threading import Lock
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from examforge.core.exceptions import InfrastructureError, ResourceNotFoundError
from examforge.models.exam_session import ExamSession
from examforge.services.batch_validator import BatchValidationResult, BatchValidator, CandidateSession, RejectedCandidate
from examforge.services.intervals import format_clock, parse_clock
from examforge.services.schedule_generator import GenerationResult, UnscheduledSubject
from examforge.services.session_status import LifecycleOverride
from examforge.services.snapshot import load_snapshot

logger = logging.getLogger(__name__)

_COMMIT_LOCK = Lock()

EDITABLE_FIELDS = {"subject_id", "date", "start", "end", "room_id", "group_ids", "supervisor_ids", "intent_kind", "notes"}


def candidate_from_row(row: ExamSession) -> CandidateSession:
    return CandidateSession(
        subject_id=row.subject_id,
        date=row.session_date,
        start=parse_clock(row.start_time),
        end=parse_clock(row.end_time),
        room_id=row.room_id,
        group_ids=tuple(row.group_ids or ()),
        supervisor_ids=tuple(row.supervisor_ids or ()),
        intent_kind=row.intent_kind,
        session_id=row.id,
        notes=row.notes,
    )


def _apply_candidate(row: ExamSession, candidate: CandidateSession) -> ExamSession:
    row.subject_id = candidate.subject_id
    row.session_date = candidate.date
    row.start_time = format_clock(candidate.start)
    row.end_time = format_clock(candidate.end)
    row.room_id = candidate.room_id
    row.group_ids = list(candidate.group_ids)
    row.supervisor_ids = list(candidate.supervisor_ids)
    row.intent_kind = candidate.intent_kind
    row.notes = candidate.notes
    return row


def _new_row(candidate: CandidateSession, taken_ids: set[str]) -> ExamSession:
    row = ExamSession()
    # Cancelled rows keep their id, so a proposed id may already be in use.
    if candidate.proposed_id and candidate.proposed_id not in taken_ids:
        row.id = candidate.proposed_id
    return _apply_candidate(row, candidate)


def _taken_ids(db: Session, candidates: Sequence[CandidateSession]) -> set[str]:
    proposed = [candidate.proposed_id for candidate in candidates if candidate.proposed_id]
    if not proposed:
        return set()
    return set(db.execute(select(ExamSession.id).where(ExamSession.id.in_(proposed))).scalars())


def _persist(db: Session, rows: list[ExamSession]) -> None:
    db.add_all(rows)
    db.commit()
    for row in rows:
        db.refresh(row)


def get_session_or_404(db: Session, session_id: str) -> ExamSession:
    try:
        row = db.get(ExamSession, session_id)
    except SQLAlchemyError as exc:
        logger.exception("SESSION LOOKUP FAILED | session_id=%s", session_id)
        raise InfrastructureError() from exc
    if row is None:
        raise ResourceNotFoundError("Exam session", session_id)
    return row


def commit_candidates(
    db: Session,
    candidates: Sequence[CandidateSession],
    *,
    atomic: bool,
    dry_run: bool = False,
) -> tuple[BatchValidationResult, list[ExamSession]]:
    """Validate against live data and insert the accepted candidates.

    Returns the validation result together with the persisted rows, in the
    order the accepted candidates appeared in the batch. Atomic batches are
    written in one transaction. Otherwise each row is committed on its own,
    so a storage failure keeps the rows committed before it.
    """
    with _COMMIT_LOCK:
        snapshot = load_snapshot(db)
        result = BatchValidator(snapshot.checker()).validate(candidates, atomic=atomic)
        if dry_run or not result.accepted:
            return result, []
        accepted = [candidate for _, candidate in result.accepted]
        rows: list[ExamSession] = []
        try:
            taken_ids = _taken_ids(db, accepted)
            pending = [_new_row(candidate, taken_ids) for candidate in accepted]
            if atomic:
                _persist(db, pending)
                rows = pending
            else:
                for row in pending:
                    _persist(db, [row])
                    rows.append(row)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception(
                "SESSION BATCH COMMIT FAILED | atomic=%s | size=%s | committed=%s",
                atomic,
                len(candidates),
                len(rows),
            )
            raise InfrastructureError() from exc

    logger.info(
        "SESSION BATCH COMMIT | atomic=%s | accepted=%s | rejected=%s",
        atomic,
        result.success_count,
        result.failure_count,
    )
    return result, rows


def update_session(db: Session, session_id: str, changes: dict) -> tuple[BatchValidationResult, ExamSession]:
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

    with _COMMIT_LOCK:
        row = get_session_or_404(db, session_id)
        candidate = replace(candidate_from_row(row), **changes)
        snapshot = load_snapshot(db)
        result = BatchValidator(snapshot.checker()).validate([candidate], atomic=True)
        if not result.all_accepted:
            return result, row
        try:
            _apply_candidate(row, candidate)
            db.commit()
            db.refresh(row)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("SESSION UPDATE FAILED | session_id=%s", session_id)
            raise InfrastructureError() from exc

    logger.info("SESSION UPDATED | session_id=%s | fields=%s", session_id, sorted(changes))
    return result, row


def cancel_session(db: Session, session_id: str) -> ExamSession:
    row = get_session_or_404(db, session_id)
    if row.lifecycle_override == LifecycleOverride.cancelled:
        return row
    try:
        row.lifecycle_override = LifecycleOverride.cancelled
        db.commit()
        db.refresh(row)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("SESSION CANCEL FAILED | session_id=%s", session_id)
        raise InfrastructureError() from exc
    logger.info("SESSION CANCELLED | session_id=%s", session_id)
    return row


def delete_session(db: Session, session_id: str) -> None:
    row = get_session_or_404(db, session_id)
    try:
        db.delete(row)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("SESSION DELETE FAILED | session_id=%s", session_id)
        raise InfrastructureError() from exc
    logger.info("SESSION DELETED | session_id=%s", session_id)


def commit_generated(db: Session, generation: GenerationResult) -> tuple[GenerationResult, list[ExamSession]]:
    """Persist a generator run, deferring sessions invalidated by live data.

    The generator worked on a snapshot; anything booked since then is caught
    here and the affected subject moves to the unscheduled list.
    """
    candidates = [
        CandidateSession(
            subject_id=booking.subject_id,
            date=booking.interval.date,
            start=booking.interval.start,
            end=booking.interval.end,
            room_id=booking.room_id,
            group_ids=tuple(sorted(booking.group_ids)),
            supervisor_ids=tuple(sorted(booking.supervisor_ids)),
            intent_kind=booking.intent_kind,
            proposed_id=booking.session_id,
        )
        for booking in generation.scheduled
    ]
    result, rows = commit_candidates(db, candidates, atomic=False)
    deferred = [_deferred_subject(item) for item in result.rejected]
    # Report the stored id, which differs from the generated one when that id was taken.
    scheduled = [
        replace(generation.scheduled[index], session_id=row.id) for (index, _), row in zip(result.accepted, rows)
    ]
    if deferred:
        logger.warning("GENERATED SESSIONS DEFERRED AT COMMIT | count=%s", len(deferred))
    return (
        GenerationResult(
            scheduled=scheduled,
            unscheduled=generation.unscheduled + deferred,
            cancelled=generation.cancelled,
            candidate_interval_count=generation.candidate_interval_count,
        ),
        rows,
    )


def _deferred_subject(rejected: RejectedCandidate) -> UnscheduledSubject:
    first = rejected.issues[0]
    return UnscheduledSubject(
        subject_id=rejected.candidate.subject_id,
        reason=f"Conflicts with sessions booked while the schedule was generated: {first.reason}",
        kind=first.kind,
    )
