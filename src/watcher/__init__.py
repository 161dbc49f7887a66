"""
File Watcher Package

Observes a watched folder for file system changes and decides when the
accumulated changes are committed to the folder's history store.

Features:
- watchdog observer scoped to one folder, recursive or direct children only
- Glob ignore patterns and exclusion of an in-tree history store
- On-save strategy: single debounce timer restarted by every event
- Periodic strategy: fixed-interval commit of whatever is pending
- In-flight commit guard; events during a commit go to the next one
- Injectable timers with a simulated clock for tests
"""

from .models import (
    CommitStrategy,
    SchedulerState,
    RawFSEvent,
)

from .config import WatcherConfig, DEFAULT_IGNORE_PATTERNS

from .exceptions import (
    WatcherError,
    ObserverError,
    InvalidWatcherConfigError,
)

from .timers import ThreadingTimers, ManualTimers
from .fs_watcher import FolderObserver, FSEventHandler
from .scheduler import ChangeScheduler


__all__ = [
    # Models
    "CommitStrategy",
    "SchedulerState",
    "RawFSEvent",
    # Config
    "WatcherConfig",
    "DEFAULT_IGNORE_PATTERNS",
    # Exceptions
    "WatcherError",
    "ObserverError",
    "InvalidWatcherConfigError",
    # Components
    "ThreadingTimers",
    "ManualTimers",
    "FolderObserver",
    "FSEventHandler",
    "ChangeScheduler",
]

__version__ = "0.1.0"
