import logging
from time import perf_counter

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from examforge.api.deps import get_db
from examforge.core.config import get_settings
from examforge.schemas.generator import (
    GenerateScheduleRequest,
    GenerateScheduleResponse,
    GeneratedSessionOut,
    UnscheduledSubjectOut,
)
from examforge.services.intervals import format_clock, parse_clock
from examforge.services.schedule_generator import DailySlot, GenerationRequest, GenerationResult, ScheduleGenerator
from examforge.services.session_store import commit_generated
from examforge.services.snapshot import load_snapshot

router = APIRouter()
logger = logging.getLogger(__name__)

settings = get_settings()


def _generation_request(payload: GenerateScheduleRequest) -> GenerationRequest:
    return GenerationRequest(
        start_date=payload.start_date,
        end_date=payload.end_date,
        daily_slots=tuple(
            DailySlot(start=parse_clock(item.start_time), end=parse_clock(item.end_time)) for item in payload.daily_slots
        ),
        include_weekends=(
            settings.generator_include_weekends if payload.include_weekends is None else payload.include_weekends
        ),
        min_supervisors=payload.min_supervisors or settings.generator_min_supervisors,
        intent_kind=payload.intent_kind or settings.generator_default_intent,
    )


def _response(result: GenerationResult, committed: bool) -> GenerateScheduleResponse:
    return GenerateScheduleResponse(
        committed=committed,
        scheduled=[
            GeneratedSessionOut(
                id=item.session_id,
                subject_id=item.subject_id,
                session_date=item.interval.date,
                start_time=format_clock(item.interval.start),
                end_time=format_clock(item.interval.end),
                room_id=item.room_id,
                group_ids=sorted(item.group_ids),
                supervisor_ids=sorted(item.supervisor_ids),
                intent_kind=item.intent_kind,
            )
            for item in result.scheduled
        ],
        unscheduled=[
            UnscheduledSubjectOut(subject_id=item.subject_id, reason=item.reason, kind=item.kind)
            for item in result.unscheduled
        ],
        candidate_interval_count=result.candidate_interval_count,
        cancelled=result.cancelled,
    )


@router.post("/schedule/generate", response_model=GenerateScheduleResponse)
def generate_schedule(payload: GenerateScheduleRequest, db: Session = Depends(get_db)) -> GenerateScheduleResponse:
    started = perf_counter()
    request = _generation_request(payload)
    snapshot = load_snapshot(db)
    result = ScheduleGenerator(snapshot.checker(), snapshot.subjects).generate(request)

    committed = False
    if payload.commit and result.scheduled:
        result, _ = commit_generated(db, result)
        committed = True

    logger.info(
        "SCHEDULE GENERATE REQUEST | commit=%s | scheduled=%s | unscheduled=%s | runtime_ms=%s",
        payload.commit,
        len(result.scheduled),
        len(result.unscheduled),
        int((perf_counter() - started) * 1000),
    )
    return _response(result, committed)
