"""Validation of candidate sessions that have not been committed yet."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, time
from typing import Sequence

from examforge.services.conflict_service import CheckResult, ConflictChecker, ConflictKind
from examforge.services.intervals import InvalidIntervalError, TimeInterval, format_clock
from examforge.services.ledger import ResourceKind
from examforge.services.session_status import IntentKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidateSession:
    subject_id: str
    date: date
    start: time
    end: time
    room_id: str
    group_ids: tuple[str, ...]
    supervisor_ids: tuple[str, ...]
    intent_kind: IntentKind = IntentKind.main_exam
    # Existing session being edited; excluded from its own ledger checks.
    session_id: str | None = None
    # Id to use when a new candidate is inserted.
    proposed_id: str | None = None
    notes: str | None = None

    def interval(self) -> TimeInterval:
        return TimeInterval(self.date, self.start, self.end)


@dataclass(frozen=True)
class RejectedCandidate:
    index: int
    candidate: CandidateSession
    issues: tuple[CheckResult, ...]

    @property
    def reason(self) -> str:
        return self.issues[0].reason or "Rejected"


@dataclass
class BatchValidationResult:
    atomic: bool
    accepted: list[tuple[int, CandidateSession]] = field(default_factory=list)
    rejected: list[RejectedCandidate] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.accepted)

    @property
    def failure_count(self) -> int:
        return len(self.rejected)

    @property
    def all_accepted(self) -> bool:
        return not self.rejected


def _internal_conflict(
    earlier_index: int,
    earlier: CandidateSession,
    later_index: int,
    later: CandidateSession,
) -> CheckResult | None:
    """Report the first resource two overlapping candidates share: room, then supervisor, then group."""
    window = f"{format_clock(later.start)}-{format_clock(later.end)} on {later.date.isoformat()}"
    if earlier.room_id == later.room_id:
        kind, resource_id = ResourceKind.room, later.room_id
        reason = f"Room {resource_id} is used by batch items {earlier_index} and {later_index} at {window}"
    else:
        shared_staff = sorted(set(earlier.supervisor_ids) & set(later.supervisor_ids))
        shared_groups = sorted(set(earlier.group_ids) & set(later.group_ids))
        if shared_staff:
            kind, resource_id = ResourceKind.staff, shared_staff[0]
            reason = f"Supervisor {resource_id} is assigned to batch items {earlier_index} and {later_index} at {window}"
        elif shared_groups:
            kind, resource_id = ResourceKind.group, shared_groups[0]
            reason = f"Group {resource_id} sits batch items {earlier_index} and {later_index} at {window}"
        else:
            return None
    return CheckResult.failed(
        ConflictKind.batch_internal_conflict,
        reason,
        first_index=earlier_index,
        second_index=later_index,
        resource_kind=kind.value,
        resource_id=resource_id,
    )


class BatchValidator:
    """Checks a batch pairwise and then each item against the ledger.

    In non-atomic mode candidates are processed in order and each one is
    compared only against earlier candidates that were accepted, so of two
    clashing items the first wins. In atomic mode any failure rejects every
    item; clashing pairs are both reported with the internal conflict.
    """

    def __init__(self, checker: ConflictChecker) -> None:
        self.checker = checker

    def validate(self, candidates: Sequence[CandidateSession], *, atomic: bool = False) -> BatchValidationResult:
        intervals: dict[int, TimeInterval] = {}
        own_issues: dict[int, list[CheckResult]] = {}
        for index, candidate in enumerate(candidates):
            issues, interval = self._check_shape(candidate)
            if interval is not None:
                intervals[index] = interval
            if issues:
                own_issues[index] = issues
                continue
            own_issues[index] = self._check_against_ledger(candidate, interval)

        if atomic:
            return self._resolve_atomic(candidates, intervals, own_issues)
        return self._resolve_independent(candidates, intervals, own_issues)

    def _check_shape(self, candidate: CandidateSession) -> tuple[list[CheckResult], TimeInterval | None]:
        issues: list[CheckResult] = []
        interval: TimeInterval | None = None
        try:
            interval = candidate.interval()
        except InvalidIntervalError as exc:
            issues.append(CheckResult.failed(ConflictKind.invalid_interval, str(exc)))
        if not candidate.group_ids:
            issues.append(CheckResult.failed(ConflictKind.incomplete_session, "At least one group is required"))
        if not candidate.supervisor_ids:
            issues.append(CheckResult.failed(ConflictKind.incomplete_session, "At least one supervisor is required"))
        return issues, interval

    def _check_against_ledger(self, candidate: CandidateSession, interval: TimeInterval) -> list[CheckResult]:
        exclude = candidate.session_id
        results = [self.checker.room_available(candidate.room_id, interval, exclude)]
        results.extend(self.checker.staff_available(staff_id, interval, exclude) for staff_id in candidate.supervisor_ids)
        results.extend(self.checker.group_available(group_id, interval, exclude) for group_id in candidate.group_ids)
        results.append(self.checker.capacity_ok(candidate.room_id, candidate.group_ids))
        return [result for result in results if not result.ok]

    def _resolve_independent(
        self,
        candidates: Sequence[CandidateSession],
        intervals: dict[int, TimeInterval],
        own_issues: dict[int, list[CheckResult]],
    ) -> BatchValidationResult:
        result = BatchValidationResult(atomic=False)
        for index, candidate in enumerate(candidates):
            issues: list[CheckResult] = []
            interval = intervals.get(index)
            if interval is not None:
                for accepted_index, accepted in result.accepted:
                    if not intervals[accepted_index].overlaps(interval):
                        continue
                    clash = _internal_conflict(accepted_index, accepted, index, candidate)
                    if clash is not None:
                        issues.append(clash)
                        break
            issues.extend(own_issues.get(index, []))
            if issues:
                result.rejected.append(RejectedCandidate(index, candidate, tuple(issues)))
            else:
                result.accepted.append((index, candidate))
        return result

    def _resolve_atomic(
        self,
        candidates: Sequence[CandidateSession],
        intervals: dict[int, TimeInterval],
        own_issues: dict[int, list[CheckResult]],
    ) -> BatchValidationResult:
        issues: dict[int, list[CheckResult]] = {index: [] for index in range(len(candidates))}
        for later in range(len(candidates)):
            if later not in intervals:
                continue
            for earlier in range(later):
                if earlier not in intervals or not intervals[earlier].overlaps(intervals[later]):
                    continue
                clash = _internal_conflict(earlier, candidates[earlier], later, candidates[later])
                if clash is not None:
                    issues[earlier].append(clash)
                    issues[later].append(clash)
        for index, found in own_issues.items():
            issues[index].extend(found)

        result = BatchValidationResult(atomic=True)
        failing = [index for index, found in issues.items() if found]
        if not failing:
            result.accepted = list(enumerate(candidates))
            return result

        logger.info("ATOMIC BATCH REJECTED | size=%s | failing_items=%s", len(candidates), failing)
        for index, candidate in enumerate(candidates):
            found = issues[index] or [
                CheckResult.failed(
                    ConflictKind.batch_aborted,
                    f"Batch was not committed because item(s) {', '.join(str(item) for item in failing)} failed validation",
                    failing_indices=failing,
                )
            ]
            result.rejected.append(RejectedCandidate(index, candidate, tuple(found)))
        return result
