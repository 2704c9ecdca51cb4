"""Default location of the evaluation database."""

from __future__ import annotations

from pathlib import Path

import structlog

log = structlog.get_logger(__name__)

DATA_DIR_NAME = ".evolving-explanations"
DB_FILE_NAME = "evals.db"
_IGNORED = ("*.db", "*.db-wal", "*.db-shm")


def find_repo_root(start_path: Path | None = None) -> Path:
    """Nearest ancestor of ``start_path`` (default: cwd) holding ``.git``, else the start itself."""
    start = (start_path or Path.cwd()).resolve()
    root = next((p for p in (start, *start.parents) if (p / ".git").exists()), start)
    log.debug("repo_root_resolved", path=str(root), is_git=root != start or (start / ".git").exists())
    return root


def get_data_dir(repo_root: Path | None = None) -> Path:
    """``<repo root>/.evolving-explanations``, created on first use with a .gitignore for the DB files."""
    data_dir = (repo_root if repo_root is not None else find_repo_root()) / DATA_DIR_NAME
    data_dir.mkdir(exist_ok=True)
    ensure_gitignore(data_dir)
    return data_dir


def get_db_path(repo_root: Path | None = None) -> Path:
    return get_data_dir(repo_root) / DB_FILE_NAME


def ensure_gitignore(data_dir: Path) -> None:
    """Append any missing DB patterns to ``data_dir/.gitignore``."""
    path = data_dir / ".gitignore"
    lines = path.read_text(encoding="utf-8").splitlines() if path.exists() else []
    missing = [pattern for pattern in _IGNORED if pattern not in lines]
    if missing:
        path.write_text("\n".join(lines + missing) + "\n", encoding="utf-8")
        log.info("gitignore_updated", path=str(path), added=missing)
