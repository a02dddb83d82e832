from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Iterable, Iterator

from examforge.services.intervals import TimeInterval
from examforge.services.session_status import IntentKind


class ResourceKind(str, Enum):
    staff = "staff"
    room = "room"
    group = "group"


@dataclass(frozen=True)
class BookedSession:
    session_id: str
    subject_id: str
    interval: TimeInterval
    room_id: str
    group_ids: frozenset[str]
    supervisor_ids: frozenset[str]
    intent_kind: IntentKind = IntentKind.main_exam
    cancelled: bool = False

    def uses(self, kind: ResourceKind, resource_id: str) -> bool:
        if kind == ResourceKind.staff:
            return resource_id in self.supervisor_ids
        if kind == ResourceKind.room:
            return self.room_id == resource_id
        return resource_id in self.group_ids


@dataclass(frozen=True)
class BookingLedger:
    """Read-only view over committed sessions used for double-booking checks.

    Cancelled sessions are dropped on construction and never conflict. The
    ledger is immutable; ``with_sessions`` returns a new ledger so batch and
    generator runs can layer tentative bookings without touching shared state.
    """

    sessions: tuple[BookedSession, ...] = ()
    _by_date: dict[date, tuple[BookedSession, ...]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        active = tuple(item for item in self.sessions if not item.cancelled)
        object.__setattr__(self, "sessions", active)
        grouped: dict[date, list[BookedSession]] = defaultdict(list)
        for item in active:
            grouped[item.interval.date].append(item)
        object.__setattr__(self, "_by_date", {key: tuple(value) for key, value in grouped.items()})

    @classmethod
    def from_sessions(cls, sessions: Iterable[BookedSession]) -> "BookingLedger":
        return cls(tuple(sessions))

    def __len__(self) -> int:
        return len(self.sessions)

    def __iter__(self) -> Iterator[BookedSession]:
        return iter(self.sessions)

    def on_date(self, value: date) -> tuple[BookedSession, ...]:
        return self._by_date.get(value, ())

    def with_sessions(self, extra: Iterable[BookedSession]) -> "BookingLedger":
        return BookingLedger(self.sessions + tuple(extra))

    def find_conflict(
        self,
        kind: ResourceKind,
        resource_id: str,
        interval: TimeInterval,
        exclude_session_id: str | None = None,
    ) -> BookedSession | None:
        for item in self.on_date(interval.date):
            if exclude_session_id is not None and item.session_id == exclude_session_id:
                continue
            if item.interval.overlaps(interval) and item.uses(kind, resource_id):
                return item
        return None

    def conflicts_for(
        self,
        kind: ResourceKind,
        resource_id: str,
        interval: TimeInterval,
        exclude_session_id: str | None = None,
    ) -> bool:
        return self.find_conflict(kind, resource_id, interval, exclude_session_id) is not None

    def supervision_counts(
        self,
        staff_id: str,
        start: date,
        end: date,
        exclude_session_id: str | None = None,
    ) -> int:
        """Number of sessions supervised by ``staff_id`` with a date in ``[start, end]``."""
        return sum(
            1
            for item in self.sessions
            if start <= item.interval.date <= end
            and staff_id in item.supervisor_ids
            and item.session_id != exclude_session_id
        )
