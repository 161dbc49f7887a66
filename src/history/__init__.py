"""
History Store Package

Durable, queryable version history for one watched folder, backed by a
git repository that may live inside the folder or at any external path.

Features:
- Idempotent initialization with an initial snapshot of existing files
- Auto-commits of changed paths, first commit captures the whole tree
- Commit listing with per-commit changed paths
- Resilient content lookup for files deleted at the requested commit
- Diffs against history or the live file, restore as a recorded commit
"""

from .models import (
    CURRENT_REF,
    DELETED_REF,
    Commit,
    DiffResult,
    auto_commit_message,
    initial_commit_message,
    restore_commit_message,
    to_git_path,
)

from .exceptions import (
    HistoryStoreError,
    GitCommandError,
    StoreInitError,
    CommitError,
    NotFoundError,
    StoreIOError,
)

from .git import GitRunner
from .store import HistoryStore, DEFAULT_STORE_DIR


__all__ = [
    # Models
    "CURRENT_REF",
    "DELETED_REF",
    "Commit",
    "DiffResult",
    "auto_commit_message",
    "initial_commit_message",
    "restore_commit_message",
    "to_git_path",
    # Exceptions
    "HistoryStoreError",
    "GitCommandError",
    "StoreInitError",
    "CommitError",
    "NotFoundError",
    "StoreIOError",
    # Components
    "GitRunner",
    "HistoryStore",
    "DEFAULT_STORE_DIR",
]

__version__ = "0.1.0"
