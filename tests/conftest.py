"""Shared pytest fixtures for all tests.

These fixtures properly clean up resources to prevent file descriptor leaks.
"""

import gc

import pytest

from apidoc.db.connection import Database
from apidoc.db.migrations import run_migrations
from apidoc.db.store import GenerationStore
from factories import InMemoryStore


@pytest.fixture(autouse=True)
def cleanup_after_test():
    """Clean up resources after each test to prevent file descriptor leaks.

    This runs automatically after every test to help garbage collect
    any lingering SQLite connections.
    """
    yield
    gc.collect()


@pytest.fixture
def temp_db(tmp_path):
    """Create a migrated temporary database that cleans up properly.

    This fixture should be used instead of creating Database instances
    directly in tests to ensure SQLite connections are released.
    """
    db = Database(tmp_path / "test.db")
    run_migrations(db)
    yield db
    db.close()
    gc.collect()


@pytest.fixture
def store(temp_db):
    """SQLite-backed generation store on a temporary database."""
    return GenerationStore(temp_db)


@pytest.fixture
def memory_store():
    """Empty in-memory cache/status store."""
    return InMemoryStore()
