"""In-memory log of commit and error notifications for API clients to poll."""

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional


@dataclass
class FolderEvent:
    """One notification raised by a folder's scheduler."""
    seq: int
    kind: str  # "commit" or "error"
    folder_id: str
    paths: List[str] = field(default_factory=list)
    error: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "kind": self.kind,
            "folder_id": self.folder_id,
            "paths": list(self.paths),
            "error": self.error,
            "timestamp": self.timestamp,
        }


class EventLog:
    """Bounded, thread-safe ring of recent folder events."""

    def __init__(self, max_events: int = 500):
        self._events: Deque[FolderEvent] = deque(maxlen=max_events)
        self._seq = 0
        self._lock = threading.Lock()

    def _append(self, kind: str, folder_id: str, paths=None, error: Optional[str] = None) -> FolderEvent:
        with self._lock:
            self._seq += 1
            event = FolderEvent(
                seq=self._seq,
                kind=kind,
                folder_id=folder_id,
                paths=list(paths or []),
                error=error,
            )
            self._events.append(event)
            return event

    def record_commit(self, folder_id: str, paths: List[str]) -> FolderEvent:
        return self._append("commit", folder_id, paths=paths)

    def record_error(self, folder_id: str, error: Exception) -> FolderEvent:
        return self._append("error", folder_id, error=str(error))

    def since(self, seq: int = 0, folder_id: Optional[str] = None) -> List[FolderEvent]:
        """Events newer than seq, oldest first."""
        with self._lock:
            events = [e for e in self._events if e.seq > seq]
        if folder_id:
            events = [e for e in events if e.folder_id == folder_id]
        return events

    @property
    def last_seq(self) -> int:
        with self._lock:
            return self._seq
