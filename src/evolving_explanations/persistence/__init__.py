"""Persistence layer: SQLite-backed completion and result storage."""

from __future__ import annotations

from evolving_explanations.persistence.completions import (
    CompletionRecord,
    CompletionStore,
    InMemoryCompletionStore,
    SQLiteCompletionStore,
)
from evolving_explanations.persistence.db import DatabaseManager
from evolving_explanations.persistence.migrations import run_migrations
from evolving_explanations.persistence.repo import find_repo_root, get_data_dir, get_db_path
from evolving_explanations.persistence.results import SQLiteResultStore

__all__ = [
    "CompletionRecord",
    "CompletionStore",
    "DatabaseManager",
    "InMemoryCompletionStore",
    "SQLiteCompletionStore",
    "SQLiteResultStore",
    "find_repo_root",
    "get_data_dir",
    "get_db_path",
    "run_migrations",
]
