"""Database layer for apidoc."""

from apidoc.db.connection import Database
from apidoc.db.migrations import run_migrations
from apidoc.db.store import GenerationStore

__all__ = ["Database", "GenerationStore", "run_migrations"]
