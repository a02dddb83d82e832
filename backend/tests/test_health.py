from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from examforge.db.bootstrap import ensure_runtime_schema_compatibility, inspect_schema


def test_health_endpoints(client):
    live = client.get("/api/health")
    assert live.status_code == 200
    assert live.json()["status"] == "ok"

    ready = client.get("/api/health/ready")
    assert ready.status_code == 200
    database = ready.json()["database"]
    assert database["ok"] is True
    assert database["schema_ok"] is True
    assert database["missing_tables"] == []


def test_bootstrap_creates_missing_tables_on_sqlite():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    missing_tables, _ = inspect_schema(engine)
    assert "exam_sessions" in missing_tables

    ensure_runtime_schema_compatibility(engine)
    assert inspect_schema(engine) == ([], {})
