# File: tests/core/test_database.py

from sqlalchemy import inspect, text
from workshop_capture.core.database.connection import engine, get_db


def test_database_connection():
    """
    Simple smoke test to ensure DB is reachable and configured.
    """
    db_gen = get_db()
    db = next(db_gen)
    try:
        # Simple query valid in both Postgres and SQLite
        result = db.execute(text("SELECT 1"))
        assert result.scalar() == 1
    finally:
        db.close()


def test_schema_has_every_table():
    tables = set(inspect(engine).get_table_names())
    assert {
        "stored_files", "segment_audio", "answers", "segments",
        "checklist_definitions", "checklist_snapshots"
    } <= tables
