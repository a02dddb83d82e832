import os

# Keep the app's own engine off disk; tests swap in their own session anyway.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import examforge.models  # noqa: E402,F401
from examforge.api.deps import get_db  # noqa: E402
from examforge.db.base import Base  # noqa: E402
from examforge.main import app  # noqa: E402
from examforge.models.group import StudentGroup  # noqa: E402
from examforge.models.room import Room  # noqa: E402
from examforge.models.staff import Staff  # noqa: E402
from examforge.models.subject import Subject  # noqa: E402

ALL_WEEK = [
    {"day": day, "start_time": "08:00", "end_time": "18:00"}
    for day in ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
]


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def seed(db_session):
    """Insert reference rows directly; entity CRUD lives outside this service."""

    class Seeder:
        def staff(self, staff_id, name, windows=None):
            row = Staff(id=staff_id, name=name, availability_windows=ALL_WEEK if windows is None else windows)
            db_session.add(row)
            db_session.commit()
            return row

        def room(self, room_id, name, capacity):
            row = Room(id=room_id, name=name, capacity=capacity)
            db_session.add(row)
            db_session.commit()
            return row

        def group(self, group_id, name, size):
            row = StudentGroup(id=group_id, name=name, size=size)
            db_session.add(row)
            db_session.commit()
            return row

        def subject(self, subject_id, code, group_ids):
            row = Subject(id=subject_id, code=code, name=f"Subject {code}", group_ids=list(group_ids))
            db_session.add(row)
            db_session.commit()
            return row

    return Seeder()
