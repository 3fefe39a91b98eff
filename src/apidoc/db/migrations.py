"""Database migrations and schema management for apidoc."""

import sqlite3

from apidoc.db.connection import Database

# Schema version for tracking migrations
SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Captured traffic sessions
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,  -- sess_YYYYMMDD_NNN
    source TEXT NOT NULL DEFAULT '',
    scenario TEXT NOT NULL DEFAULT '',
    host TEXT NOT NULL DEFAULT '',
    record_count INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'imported',  -- 'imported', 'generating', 'generated', 'partial_generated', 'failed'
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- Per-batch LLM outputs
-- One row per (session, batch index) - upsert semantics
CREATE TABLE IF NOT EXISTS llm_cache (
    session_id TEXT NOT NULL,
    batch_index INTEGER NOT NULL,
    batch_key TEXT NOT NULL,
    status TEXT NOT NULL,  -- 'ok', 'failed'
    raw_output TEXT NOT NULL DEFAULT '',
    model TEXT NOT NULL DEFAULT '',
    error_message TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    PRIMARY KEY (session_id, batch_index)
);

CREATE INDEX IF NOT EXISTS idx_sessions_status ON sessions(status);
CREATE INDEX IF NOT EXISTS idx_llm_cache_status ON llm_cache(session_id, status);
"""


def run_migrations(db: Database) -> None:
    """Create or upgrade the schema to SCHEMA_VERSION.

    Args:
        db: Database connection.
    """
    try:
        result = db.execute(
            "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
        ).fetchone()
        current_version = result[0] if result else 0
    except sqlite3.OperationalError:
        # Table doesn't exist yet
        current_version = 0

    if current_version < SCHEMA_VERSION:
        # Note: executescript auto-commits, so we handle the version insert separately
        db.executescript(SCHEMA_SQL)
        db.execute(
            "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
        db.commit()
