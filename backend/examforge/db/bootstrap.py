from __future__ import annotations

import logging

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from examforge.db.base import Base
from examforge.db.session import engine as default_engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "staff": {"id", "name", "availability_windows"},
    "staff_date_overrides": {"id", "staff_id", "override_date", "start_time", "end_time", "available", "reason"},
    "rooms": {"id", "name", "capacity"},
    "student_groups": {"id", "name", "size"},
    "subjects": {"id", "code", "group_ids"},
    "exam_sessions": {
        "id",
        "subject_id",
        "session_date",
        "start_time",
        "end_time",
        "room_id",
        "group_ids",
        "supervisor_ids",
        "intent_kind",
        "lifecycle_override",
    },
}


def inspect_schema(engine: Engine | None = None) -> tuple[list[str], dict[str, list[str]]]:
    """Return ``(missing_tables, missing_columns)`` for the tables the engine reads."""
    engine = engine or default_engine
    missing_tables: list[str] = []
    missing_columns: dict[str, list[str]] = {}
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        for table_name, columns in REQUIRED_COLUMNS.items():
            if table_name not in table_names:
                missing_tables.append(table_name)
                continue
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            missing = sorted(columns - existing)
            if missing:
                missing_columns[table_name] = missing
    return missing_tables, missing_columns


def ensure_runtime_schema_compatibility(engine: Engine | None = None) -> None:
    engine = engine or default_engine
    # Local SQLite databases are created on the fly; other backends go through Alembic.
    if engine.dialect.name == "sqlite":
        import examforge.models  # noqa: F401

        Base.metadata.create_all(bind=engine)

    missing_tables, missing_columns = inspect_schema(engine)
    if missing_tables or missing_columns:
        logger.warning(
            "SCHEMA INCOMPLETE | missing_tables=%s | missing_columns=%s | hint=run `alembic upgrade head`",
            missing_tables,
            missing_columns,
        )
