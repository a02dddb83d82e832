from __future__ import annotations

from datetime import date, timedelta

from examforge.services.ledger import BookingLedger


def weekly_window(value: date) -> tuple[date, date]:
    """Monday-to-Sunday civil week containing ``value``."""
    start = value - timedelta(days=value.weekday())
    return start, start + timedelta(days=6)


def supervision_load(
    ledger: BookingLedger,
    staff_id: str,
    value: date,
    exclude_session_id: str | None = None,
) -> tuple[int, int]:
    """Return ``(daily, weekly)`` supervision counts for ``staff_id`` around ``value``."""
    week_start, week_end = weekly_window(value)
    daily = ledger.supervision_counts(staff_id, value, value, exclude_session_id)
    weekly = ledger.supervision_counts(staff_id, week_start, week_end, exclude_session_id)
    return daily, weekly
