"""Tests for the database layer."""

from apidoc.db.connection import Database
from apidoc.db.migrations import SCHEMA_VERSION, run_migrations


def test_database_creates_file(tmp_path):
    db_path = tmp_path / "apidoc.db"
    db = Database(db_path)
    try:
        db.execute("SELECT 1")
        assert db_path.exists()
    finally:
        db.close()


def test_migrations_create_tables(temp_db):
    tables = {
        row["name"]
        for row in temp_db.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    }

    assert {"schema_version", "sessions", "llm_cache"} <= tables


def test_migrations_record_version(temp_db):
    row = temp_db.execute("SELECT MAX(version) AS version FROM schema_version").fetchone()

    assert row["version"] == SCHEMA_VERSION


def test_migrations_are_idempotent(temp_db):
    run_migrations(temp_db)
    run_migrations(temp_db)

    rows = temp_db.execute("SELECT version FROM schema_version").fetchall()
    assert len(rows) == 1
