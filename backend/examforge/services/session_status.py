"""Derived lifecycle status for exam sessions.

Intent kind (what sort of exam) and lifecycle status (where it is in time)
are separate axes. Only ``cancelled`` is ever stored; every other status is
recomputed from the interval and an explicit ``now`` on each read.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from examforge.services.intervals import TimeInterval


class IntentKind(str, Enum):
    supervised_test = "supervised_test"
    lab_exam = "lab_exam"
    main_exam = "main_exam"
    retake_exam = "retake_exam"

    @classmethod
    def parse(cls, value: "str | IntentKind | None") -> "IntentKind | None":
        if value is None or isinstance(value, IntentKind):
            return value
        normalized = value.strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            return LEGACY_INTENT_ALIASES.get(normalized)


# Values the previous system wrote into its single status column.
LEGACY_INTENT_ALIASES: dict[str, IntentKind] = {
    "devoir_surveille": IntentKind.supervised_test,
    "examen_tp": IntentKind.lab_exam,
    "examen_principal": IntentKind.main_exam,
    "examen_rattrapage": IntentKind.retake_exam,
}


class LifecycleStatus(str, Enum):
    scheduled = "scheduled"
    ongoing = "ongoing"
    completed = "completed"
    cancelled = "cancelled"


class LifecycleOverride(str, Enum):
    cancelled = "cancelled"


@dataclass(frozen=True)
class ResolvedStatus:
    status: LifecycleStatus
    intent_kind: IntentKind | None


class _HasLifecycle(Protocol):
    interval: "TimeInterval"
    intent_kind: IntentKind
    cancelled: bool


def _time_status(interval: "TimeInterval", now: datetime) -> LifecycleStatus:
    today = now.date()
    if today < interval.date:
        return LifecycleStatus.scheduled
    if today > interval.date:
        return LifecycleStatus.completed
    clock = now.time().replace(tzinfo=None)
    if clock < interval.start:
        return LifecycleStatus.scheduled
    if clock > interval.end:
        return LifecycleStatus.completed
    return LifecycleStatus.ongoing


def resolve_status(
    interval: "TimeInterval",
    stored: "str | IntentKind | LifecycleStatus | LifecycleOverride | None",
    now: datetime,
) -> ResolvedStatus:
    """Compute the effective status of a session at ``now``.

    ``stored`` is whatever the record holds: the ``cancelled`` override, an
    intent kind (current or legacy spelling), a stale lifecycle value, or
    nothing. ``now`` must be a civil datetime in the zone the session was
    entered in; an aware datetime is read by its wall-clock fields.
    """
    value = stored.value if isinstance(stored, Enum) else stored
    if value == LifecycleStatus.cancelled.value:
        return ResolvedStatus(LifecycleStatus.cancelled, None)
    intent = IntentKind.parse(value) if value is not None else None
    return ResolvedStatus(_time_status(interval, now), intent)


def resolve_session(session: _HasLifecycle, now: datetime) -> ResolvedStatus:
    """Resolve a stored session. Cancelled sessions keep their intent kind."""
    stored = LifecycleOverride.cancelled if session.cancelled else session.intent_kind
    resolved = resolve_status(session.interval, stored, now)
    return ResolvedStatus(resolved.status, session.intent_kind)
