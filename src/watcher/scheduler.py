"""Decides when a watched folder's pending changes are committed."""

import logging
import os
import threading
from pathlib import Path, PurePosixPath
from typing import Callable, List, Optional, Set

from ..history.exceptions import HistoryStoreError
from .config import WatcherConfig
from .exceptions import ObserverError
from .fs_watcher import FolderObserver
from .models import CommitStrategy, RawFSEvent, SchedulerState
from .timers import ThreadingTimers

logger = logging.getLogger(__name__)

CommitCallback = Callable[[List[str]], None]
ErrorCallback = Callable[[Exception], None]


class ChangeScheduler:
    """
    Watches one folder and commits accumulated changes to its history store.

    Under the on-save strategy every event restarts a single debounce timer
    and the pending set is committed once the folder has been quiet for the
    debounce window. Under the periodic strategy a repeating timer commits
    whatever is pending at each tick.

    At most one commit is in flight at a time. Events arriving during a
    commit accumulate in a fresh pending set that the next trigger commits.
    """

    def __init__(
        self,
        working_path: Path,
        store,
        config: Optional[WatcherConfig] = None,
        on_commit: Optional[CommitCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        timers=None,
        observer_factory=None,
    ):
        """
        Initialize the scheduler. Nothing is observed until start().

        Args:
            working_path: Folder to watch
            store: HistoryStore receiving the commits
            config: Commit strategy, intervals and ignore patterns
            on_commit: Called with the committed paths after each successful commit
            on_error: Called with observer and commit failures
            timers: Timer factory (ThreadingTimers by default, ManualTimers in tests)
            observer_factory: Builds the filesystem observer (FolderObserver by default)
        """
        self.working_path = Path(working_path)
        self.store = store
        self.config = config or WatcherConfig()
        self.on_commit = on_commit
        self.on_error = on_error
        self._timers = timers or ThreadingTimers()
        self._observer_factory = observer_factory or FolderObserver

        self._root = Path(os.path.abspath(self.working_path))
        self._store_prefix = self._storage_prefix()

        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._state = SchedulerState.STOPPED
        self._pending: Set[str] = set()
        self._committing = False
        self._observer = None
        self._debounce = None
        self._debounce_generation = 0
        self._periodic = None

    def _storage_prefix(self) -> Optional[str]:
        """Storage location relative to the working tree, if it lives inside it."""
        storage = getattr(self.store, "storage_location", None)
        if storage is None:
            return None
        try:
            rel = Path(os.path.abspath(storage)).relative_to(self._root)
        except ValueError:
            return None
        return rel.as_posix() or None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> SchedulerState:
        with self._lock:
            return self._state

    @property
    def is_watching(self) -> bool:
        return self.state == SchedulerState.WATCHING

    @property
    def is_committing(self) -> bool:
        with self._lock:
            return self._committing

    @property
    def pending_changes(self) -> List[str]:
        """Paths changed since the last commit attempt."""
        with self._lock:
            return sorted(self._pending)

    def start(self) -> bool:
        """
        Initialize the store and start watching.

        A no-op unless the scheduler is stopped.

        Returns:
            True if the scheduler is watching afterwards

        Raises:
            StoreInitError: If the history store cannot be initialized
        """
        with self._lock:
            if self._state != SchedulerState.STOPPED:
                return self._state == SchedulerState.WATCHING
            self._state = SchedulerState.STARTING

        try:
            self.store.initialize()
        except HistoryStoreError:
            with self._lock:
                self._state = SchedulerState.STOPPED
            raise

        observer = self._observer_factory(
            self.working_path,
            self.handle_event,
            recursive=self.config.recursive,
            on_error=self._report_error,
        )
        try:
            observer.start()
        except (ObserverError, OSError) as e:
            logger.error(f"Failed to watch {self.working_path}: {e}")
            with self._lock:
                self._state = SchedulerState.STOPPED
            self._report_error(e)
            return False

        with self._lock:
            if self._state != SchedulerState.STARTING:
                # stop() ran while the store was initializing
                abandoned = observer
            else:
                abandoned = None
                self._observer = observer
                self._state = SchedulerState.WATCHING
                if self.config.commit_strategy == CommitStrategy.PERIODIC:
                    self._periodic = self._timers.call_every(
                        self.config.periodic_interval_seconds, self._periodic_tick
                    )
        if abandoned is not None:
            abandoned.stop()
            return False

        logger.info(
            f"Watching {self.working_path} ({self.config.commit_strategy.value}"
            + (
                f", every {self.config.periodic_interval_minutes} min)"
                if self.config.commit_strategy == CommitStrategy.PERIODIC
                else ")"
            )
        )
        return True

    def stop(self) -> None:
        """Detach the observer, cancel timers and discard pending changes."""
        with self._lock:
            if self._state == SchedulerState.STOPPED:
                return
            self._state = SchedulerState.STOPPED
            observer = self._observer
            self._observer = None
            self._cancel_timers()
            discarded = len(self._pending)
            self._pending.clear()

        if observer is not None:
            observer.stop()
        if discarded:
            logger.info(f"Stopped watching {self.working_path}, discarded {discarded} pending change(s)")
        else:
            logger.info(f"Stopped watching {self.working_path}")

    def _cancel_timers(self) -> None:
        # Caller holds self._lock
        self._debounce_generation += 1
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None
        if self._periodic is not None:
            self._periodic.cancel()
            self._periodic = None

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until no commit is in flight.

        Returns:
            False if the timeout expired first
        """
        with self._idle:
            return self._idle.wait_for(lambda: not self._committing, timeout)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def handle_event(self, event: RawFSEvent) -> None:
        """Add the paths touched by a filesystem event to the pending set."""
        if event.is_directory and event.event_type in ("created", "modified"):
            return

        paths = [p for p in (self._relative(path) for path in event.paths) if p is not None]
        if not paths:
            return

        with self._lock:
            if self._state == SchedulerState.STOPPED:
                return
            self._pending.update(paths)
            debounce = self.config.commit_strategy == CommitStrategy.ON_SAVE
        logger.debug(f"{event.event_type}: {', '.join(paths)}")

        if debounce:
            self._arm_debounce()

    def _relative(self, path) -> Optional[str]:
        """Normalize an event path, or None when it should not be versioned."""
        absolute = Path(os.path.abspath(path))
        try:
            rel = absolute.relative_to(self._root)
        except ValueError:
            try:
                rel = absolute.resolve().relative_to(self._root.resolve())
            except (ValueError, OSError):
                return None

        rel_path = rel.as_posix()
        if rel_path in ("", "."):
            return None
        if self._store_prefix and (
            rel_path == self._store_prefix or rel_path.startswith(self._store_prefix + "/")
        ):
            return None
        if not self.config.recursive and len(PurePosixPath(rel_path).parts) > 1:
            return None
        if self.config.should_ignore(rel_path):
            return None
        return rel_path

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def _arm_debounce(self) -> None:
        with self._lock:
            if self._state == SchedulerState.STOPPED:
                return
            if self._debounce is not None:
                self._debounce.cancel()
            self._debounce_generation += 1
            generation = self._debounce_generation
            self._debounce = self._timers.call_later(
                self.config.debounce_seconds,
                lambda: self._debounce_fired(generation),
            )

    def _debounce_fired(self, generation: int) -> None:
        with self._lock:
            if generation != self._debounce_generation or self._state != SchedulerState.WATCHING:
                return
            self._debounce = None
        self.commit_pending()

    def _periodic_tick(self) -> None:
        if self.is_watching:
            self.commit_pending()

    def commit_pending(self) -> str:
        """
        Commit everything pending.

        Skipped while another commit is in flight or nothing is pending.
        A failed commit is reported to on_error and its paths are not
        retried unless they change again.

        Returns:
            The new commit hash, or "" if nothing was committed
        """
        with self._lock:
            if self._committing or not self._pending:
                return ""
            paths = sorted(self._pending)
            self._pending = set()
            self._committing = True

        commit_hash = ""
        try:
            commit_hash = self.store.commit(paths)
        except HistoryStoreError as e:
            logger.error(f"Commit failed for {self.working_path}: {e}")
            self._report_error(e)
        finally:
            with self._lock:
                self._committing = False
                self._idle.notify_all()
                rearm = (
                    self._state == SchedulerState.WATCHING
                    and self.config.commit_strategy == CommitStrategy.ON_SAVE
                    and bool(self._pending)
                    and self._debounce is None
                )
            if rearm:
                self._arm_debounce()

        if commit_hash:
            logger.info(f"Committed {len(paths)} change(s) in {self.working_path}: {commit_hash[:7]}")
            if self.on_commit:
                try:
                    self.on_commit(paths)
                except Exception as e:
                    logger.error(f"Commit callback failed: {e}")
        return commit_hash

    def _report_error(self, error: Exception) -> None:
        if self.on_error is None:
            return
        try:
            self.on_error(error)
        except Exception as e:
            logger.error(f"Error callback failed: {e}")

    def __repr__(self) -> str:
        return f"ChangeScheduler(working_path={str(self.working_path)!r}, state={self.state.value})"
