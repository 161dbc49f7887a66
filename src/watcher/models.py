"""Data models for the file watcher package."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional
import time


class CommitStrategy(Enum):
    """When pending changes are committed."""
    ON_SAVE = "on-save"
    PERIODIC = "periodic"

    @classmethod
    def parse(cls, value) -> "CommitStrategy":
        """Accept an enum member or its string value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower().replace("_", "-"))
        except ValueError:
            raise ValueError(f"Unknown commit strategy: {value!r}") from None


class SchedulerState(Enum):
    """Lifecycle states of a change scheduler."""
    STOPPED = "stopped"
    STARTING = "starting"
    WATCHING = "watching"


@dataclass
class RawFSEvent:
    """
    Raw event from the filesystem watcher before processing.

    Attributes:
        event_type: Raw event type string (created, deleted, modified, moved)
        src_path: Source path of the event
        dest_path: Destination path (for move events)
        is_directory: Whether this is a directory event
        timestamp: Unix timestamp when the event occurred
    """
    event_type: str
    src_path: Path
    dest_path: Optional[Path] = None
    is_directory: bool = False
    timestamp: float = field(default_factory=time.time)

    @property
    def paths(self) -> List[Path]:
        """All paths touched by this event (both ends of a move)."""
        if self.dest_path is not None:
            return [self.src_path, self.dest_path]
        return [self.src_path]
