from collections.abc import Generator
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import Query
from sqlalchemy.orm import Session

from examforge.core.config import get_settings
from examforge.core.exceptions import ConfigurationError
from examforge.db.session import SessionLocal


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def civil_now() -> datetime:
    """Current wall-clock time in the zone exam times are entered in, as a naive datetime."""
    zone_name = get_settings().civil_timezone
    try:
        zone = ZoneInfo(zone_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(f"Unknown civil_timezone {zone_name!r}") from exc
    return datetime.now(zone).replace(tzinfo=None)


def get_now(now: datetime | None = Query(default=None)) -> datetime:
    # An explicit ?now= keeps status reads reproducible.
    if now is not None:
        return now.replace(tzinfo=None) if now.tzinfo is not None else now
    return civil_now()
