"""File system observation for one watched folder, using the watchdog library."""

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from watchdog.observers import Observer
from watchdog.events import (
    FileSystemEventHandler,
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
)

from .exceptions import ObserverError
from .models import RawFSEvent

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[Exception], None]


class FSEventHandler(FileSystemEventHandler):
    """Handler that converts watchdog events to RawFSEvent."""

    def __init__(
        self,
        callback: Callable[[RawFSEvent], None],
        on_error: Optional[ErrorCallback] = None,
    ):
        super().__init__()
        self.callback = callback
        self.on_error = on_error

    def _emit(self, event_type: str, src_path: Path, dest_path: Optional[Path] = None, is_directory: bool = False):
        """Emit a RawFSEvent to the callback, routing failures to on_error."""
        raw_event = RawFSEvent(
            event_type=event_type,
            src_path=src_path,
            dest_path=dest_path,
            is_directory=is_directory,
            timestamp=time.time(),
        )
        try:
            self.callback(raw_event)
        except Exception as e:
            logger.error(f"Error handling {event_type} event for {src_path}: {e}")
            if self.on_error:
                self.on_error(e)

    def on_created(self, event):
        is_dir = isinstance(event, DirCreatedEvent)
        self._emit("created", Path(event.src_path), is_directory=is_dir)

    def on_deleted(self, event):
        is_dir = isinstance(event, DirDeletedEvent)
        self._emit("deleted", Path(event.src_path), is_directory=is_dir)

    def on_modified(self, event):
        is_dir = isinstance(event, DirModifiedEvent)
        self._emit("modified", Path(event.src_path), is_directory=is_dir)

    def on_moved(self, event):
        is_dir = isinstance(event, DirMovedEvent)
        self._emit(
            "moved",
            Path(event.src_path),
            Path(event.dest_path),
            is_directory=is_dir,
        )


class FolderObserver:
    """
    Owns one watchdog observer scoped to one folder.

    Pre-existing files are never announced; only changes made after
    start() produce events.
    """

    def __init__(
        self,
        root: Path,
        callback: Callable[[RawFSEvent], None],
        recursive: bool = True,
        on_error: Optional[ErrorCallback] = None,
    ):
        """
        Initialize the observer.

        Args:
            root: Directory to observe
            callback: Receives every raw filesystem event
            recursive: Whether to observe subdirectories
            on_error: Receives errors raised while handling events
        """
        self.root = Path(root)
        self.recursive = recursive
        self._handler = FSEventHandler(callback, on_error)
        self._observer: Optional[Observer] = None
        self._lock = threading.Lock()

    def start(self) -> None:
        """
        Start observing the folder.

        Raises:
            ObserverError: If the folder cannot be observed (missing, permission denied)
        """
        with self._lock:
            if self._observer is not None:
                return

            if not self.root.is_dir():
                raise ObserverError(f"Cannot watch missing folder: {self.root}")

            observer = Observer()
            try:
                observer.schedule(self._handler, str(self.root), recursive=self.recursive)
                observer.start()
            except OSError as e:
                raise ObserverError(f"Failed to watch {self.root}: {e}") from e

            self._observer = observer
            logger.debug(f"Observer started for {self.root} (recursive={self.recursive})")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop observing and wait for the observer thread to exit."""
        with self._lock:
            observer = self._observer
            self._observer = None

        if observer is None:
            return
        observer.stop()
        observer.join(timeout=timeout)
        logger.debug(f"Observer stopped for {self.root}")

    @property
    def is_alive(self) -> bool:
        with self._lock:
            return self._observer is not None and self._observer.is_alive()
