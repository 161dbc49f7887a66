"""Data models for the history store package."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Iterable, List, Optional


CURRENT_REF = "current"
DELETED_REF = "deleted"

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class Commit:
    """
    One snapshot in a folder's history.

    Attributes:
        hash: Full commit id
        message: Commit message (subject and body, stripped)
        timestamp: Author date as an aware datetime
        author: Author name
        changed_paths: Paths relative to the working tree touched by this commit
    """
    hash: str
    message: str
    timestamp: datetime
    author: str
    changed_paths: List[str] = field(default_factory=list)

    @property
    def short_hash(self) -> str:
        return self.hash[:7]

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "hash": self.hash,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "author": self.author,
            "changed_paths": list(self.changed_paths),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Commit":
        """Create from dictionary."""
        return cls(
            hash=data["hash"],
            message=data.get("message", ""),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            author=data.get("author", ""),
            changed_paths=list(data.get("changed_paths", [])),
        )


@dataclass(frozen=True)
class DiffResult:
    """
    Old and new content of one file, computed on demand.

    Attributes:
        file_name: Base name of the file
        old_content: Content at old_ref
        new_content: Content at new_ref, or live disk content
        old_ref: Commit hash of the old side
        new_ref: Commit hash, CURRENT_REF or DELETED_REF
    """
    file_name: str
    old_content: str
    new_content: str
    old_ref: str
    new_ref: str = CURRENT_REF

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "file_name": self.file_name,
            "old_content": self.old_content,
            "new_content": self.new_content,
            "old_ref": self.old_ref,
            "new_ref": self.new_ref,
        }


def to_git_path(path) -> str:
    """Normalize a relative path to the POSIX form git expects."""
    text = str(path).replace("\\", "/")
    while text.startswith("./"):
        text = text[2:]
    return text.strip("/")


def format_timestamp(moment: Optional[datetime] = None) -> str:
    """Format a moment for commit messages (UTC, second resolution)."""
    if moment is None:
        moment = datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime(TIMESTAMP_FORMAT)


def auto_commit_message(paths: Iterable[str], moment: Optional[datetime] = None) -> str:
    """Build the message for a scheduled commit: base names only."""
    names = sorted({PurePosixPath(to_git_path(p)).name for p in paths})
    return f"Auto-commit: {format_timestamp(moment)} - [{', '.join(names)}]"


def initial_commit_message(moment: Optional[datetime] = None) -> str:
    return f"Initial commit: {format_timestamp(moment)}"


def restore_commit_message(path: str, ref: str, moment: Optional[datetime] = None) -> str:
    name = PurePosixPath(to_git_path(path)).name
    return f"Restored {name} from {ref[:7]} at {format_timestamp(moment)}"
