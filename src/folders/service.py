"""
Owner of every watched folder's history store and change scheduler.
"""

import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..history.exceptions import HistoryStoreError, StoreIOError
from ..history.models import Commit, DiffResult, to_git_path
from ..history.store import HistoryStore
from ..watcher.scheduler import ChangeScheduler
from .locations import DetectedStore, custom_store_location, detect_existing_store
from .models import StoreLocationMode, WatchedFolder
from .registry import FolderRegistry
from .relocation import RelocationCoordinator, RelocationResult

logger = logging.getLogger(__name__)

# Name fragments skipped when listing a folder's files
LIST_IGNORE_NAMES = [
    "node_modules",
    ".git",
    ".DS_Store",
    ".tmp",
    ".log",
    "dist",
    "build",
    ".next",
    ".cache",
]

# Changing any of these restarts an active scheduler
SCHEDULER_FIELDS = {"commit_strategy", "periodic_interval", "ignore_patterns", "watch_subfolders"}

FolderCommitCallback = Callable[[str, List[str]], None]
FolderErrorCallback = Callable[[str, Exception], None]


@dataclass
class FolderSession:
    """Live objects for one folder. Both are created lazily."""
    store: Optional[HistoryStore] = None
    scheduler: Optional[ChangeScheduler] = None


class VersioningService:
    """
    Runs continuous version history for every registered folder.

    Each folder has its own store and scheduler; a failure in one folder
    is reported through on_error and never affects another folder.
    """

    def __init__(
        self,
        registry: Optional[FolderRegistry] = None,
        on_commit: Optional[FolderCommitCallback] = None,
        on_error: Optional[FolderErrorCallback] = None,
        clock: Optional[Callable[[], datetime]] = None,
        timers=None,
        observer_factory=None,
        git_binary: str = "git",
        home: Optional[Path] = None,
    ):
        """
        Initialize the service. No folder is watched until start_all() or start_watching().

        Args:
            registry: Folder registry (memory-only registry by default)
            on_commit: Called with (folder_id, paths) after each automatic commit
            on_error: Called with (folder_id, error) for scheduler-level failures
            clock: Time source for commit dates and backup names
            timers: Timer factory passed to every scheduler
            observer_factory: Observer factory passed to every scheduler
            git_binary: git executable
            home: Home directory used when detecting existing stores
        """
        self.registry = registry or FolderRegistry()
        self.on_commit = on_commit
        self.on_error = on_error
        self._clock = clock
        self._timers = timers
        self._observer_factory = observer_factory
        self._git_binary = git_binary
        self._home = home
        self._sessions: Dict[str, FolderSession] = {}
        self._lock = threading.RLock()
        self.relocator = RelocationCoordinator(self.registry, self, clock=clock)

    # ------------------------------------------------------------------
    # Folder lifecycle
    # ------------------------------------------------------------------

    def folders(self) -> List[WatchedFolder]:
        return self.registry.get_folders()

    def get_folder(self, folder_id: str) -> WatchedFolder:
        return self.registry.get_folder(folder_id)

    def add_folder(self, path: Path, start: bool = True, **options: Any) -> WatchedFolder:
        """
        Register a folder and, unless start is False, begin watching it.

        When the configured default is a custom store root and no store
        path is given, the store goes to ``<root>/<name>-git``.

        Raises:
            ValueError: If the path is not a directory or an option is invalid
            FolderAlreadyExistsError: If the folder is already registered
        """
        path = Path(path).expanduser()
        if not path.is_dir():
            raise ValueError(f"Not a directory: {path}")

        config = self.registry.config
        if (
            not options.get("custom_store_path")
            and config.default_store_location == StoreLocationMode.CUSTOM
            and config.default_custom_store_root
        ):
            name = options.get("name") or Path(os.path.abspath(path)).name
            options["custom_store_path"] = custom_store_location(config.default_custom_store_root, name)

        folder = self.registry.add_folder(path, **options)
        if start and folder.is_active:
            self._start(folder.id)
        return self.registry.get_folder(folder.id)

    def remove_folder(self, folder_id: str) -> WatchedFolder:
        """Stop watching and unregister a folder. Its history stays on disk."""
        self._stop(folder_id)
        with self._lock:
            self._sessions.pop(folder_id, None)
        return self.registry.remove_folder(folder_id)

    def update_folder(self, folder_id: str, **updates: Any) -> WatchedFolder:
        """
        Change folder settings, restarting an active scheduler when its policy changed.

        Raises:
            FolderNotFoundError: If the folder is unknown
            ValueError: If a field is unknown or out of range
        """
        before = self.registry.get_folder(folder_id)
        folder = self.registry.update_folder(folder_id, **updates)

        if "custom_store_path" in updates and folder.storage_location != before.storage_location:
            was_watching = self.suspend(folder_id)
            self.discard_store(folder_id)
            if was_watching:
                self._start(folder_id)
        elif SCHEDULER_FIELDS & set(updates):
            was_watching = self.suspend(folder_id)
            with self._lock:
                session = self._sessions.get(folder_id)
                if session is not None:
                    session.scheduler = None
            if was_watching:
                logger.info(f"Restarting scheduler for {folder.name} with new settings")
                self._start(folder_id)
        return self.registry.get_folder(folder_id)

    def start_watching(self, folder_id: str) -> bool:
        """Start watching a folder and mark it active."""
        self.registry.get_folder(folder_id)
        started = self._start(folder_id)
        if started:
            self.registry.update_folder(folder_id, is_active=True)
        return started

    def stop_watching(self, folder_id: str) -> None:
        """Stop watching a folder and mark it inactive."""
        self.registry.get_folder(folder_id)
        self._stop(folder_id)
        self.registry.update_folder(folder_id, is_active=False)

    def start_all(self) -> Dict[str, bool]:
        """Start every active folder. Returns folder id -> watching."""
        results = {}
        for folder in self.registry.get_folders():
            if folder.is_active:
                results[folder.id] = self._start(folder.id)
        return results

    def stop_all(self) -> None:
        with self._lock:
            folder_ids = list(self._sessions)
        for folder_id in folder_ids:
            self._stop(folder_id)

    def is_watching(self, folder_id: str) -> bool:
        with self._lock:
            session = self._sessions.get(folder_id)
            return bool(session and session.scheduler and session.scheduler.is_watching)

    def _session(self, folder_id: str) -> FolderSession:
        # Caller holds self._lock
        session = self._sessions.get(folder_id)
        if session is None:
            session = FolderSession()
            self._sessions[folder_id] = session
        return session

    def _start(self, folder_id: str) -> bool:
        folder = self.registry.get_folder(folder_id)
        with self._lock:
            session = self._session(folder_id)
            if session.scheduler is not None and session.scheduler.is_watching:
                return True
            if session.scheduler is None:
                session.scheduler = ChangeScheduler(
                    folder.path,
                    self.get_store(folder_id),
                    config=folder.watcher_config(),
                    on_commit=lambda paths: self._notify_commit(folder_id, paths),
                    on_error=lambda error: self._notify_error(folder_id, error),
                    timers=self._timers,
                    observer_factory=self._observer_factory,
                )
            scheduler = session.scheduler

        try:
            return scheduler.start()
        except HistoryStoreError as e:
            logger.error(f"Cannot start watching {folder.name}: {e}")
            self._notify_error(folder_id, e)
            return False

    def _stop(self, folder_id: str) -> None:
        with self._lock:
            session = self._sessions.get(folder_id)
            scheduler = session.scheduler if session else None
        if scheduler is not None:
            scheduler.stop()

    # Hooks used by RelocationCoordinator

    def suspend(self, folder_id: str) -> bool:
        """Stop the scheduler and wait for an in-flight commit. Returns whether it was watching."""
        with self._lock:
            session = self._sessions.get(folder_id)
            scheduler = session.scheduler if session else None
        if scheduler is None:
            return False
        was_watching = scheduler.is_watching
        scheduler.stop()
        scheduler.wait_until_idle()
        return was_watching

    def resume(self, folder_id: str) -> bool:
        return self._start(folder_id)

    def discard_store(self, folder_id: str) -> None:
        """Forget the cached store and scheduler; both are rebuilt on next use."""
        with self._lock:
            session = self._sessions.get(folder_id)
            if session is None:
                return
            if session.scheduler is not None:
                session.scheduler.stop()
            session.scheduler = None
            session.store = None

    def get_store(self, folder_id: str) -> HistoryStore:
        """The folder's history store, created on first use."""
        folder = self.registry.get_folder(folder_id)
        with self._lock:
            session = self._session(folder_id)
            if session.store is None:
                session.store = HistoryStore(
                    folder.path,
                    folder.custom_store_path,
                    clock=self._clock,
                    git_binary=self._git_binary,
                )
            return session.store

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _notify_commit(self, folder_id: str, paths: List[str]) -> None:
        if self.on_commit:
            self.on_commit(folder_id, paths)

    def _notify_error(self, folder_id: str, error: Exception) -> None:
        logger.error(f"Folder {folder_id}: {error}")
        if self.on_error:
            try:
                self.on_error(folder_id, error)
            except Exception as e:
                logger.error(f"Error callback failed: {e}")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_commits(self, folder_id: str, limit: int = 50) -> List[Commit]:
        return self.get_store(folder_id).get_commits(limit)

    def read_file_at(self, folder_id: str, ref: str, path: str) -> str:
        return self.get_store(folder_id).get_file_content_resilient(ref, path)

    def diff(self, folder_id: str, path: str, old_ref: str, new_ref: Optional[str] = None) -> DiffResult:
        return self.get_store(folder_id).get_diff(path, old_ref, new_ref)

    def restore(self, folder_id: str, path: str, ref: str) -> str:
        """Restore a historical version; returns the hash of the restore commit."""
        return self.get_store(folder_id).restore_file(path, ref)

    def pending_changes(self, folder_id: str) -> List[str]:
        self.registry.get_folder(folder_id)
        with self._lock:
            session = self._sessions.get(folder_id)
            scheduler = session.scheduler if session else None
        return scheduler.pending_changes if scheduler else []

    def list_files(self, folder_id: str) -> List[str]:
        """Files in the working tree, sorted, skipping build and tooling directories."""
        folder = self.registry.get_folder(folder_id)
        root = folder.path
        store = Path(os.path.abspath(folder.storage_location))
        files = []

        def skip(name: str) -> bool:
            return any(fragment in name for fragment in LIST_IGNORE_NAMES)

        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            dirnames[:] = sorted(
                d for d in dirnames
                if not skip(d) and Path(os.path.abspath(current / d)) != store
            )
            for name in filenames:
                if not skip(name):
                    files.append((current / name).relative_to(root).as_posix())
        return sorted(files)

    # ------------------------------------------------------------------
    # File operations
    # ------------------------------------------------------------------

    def _resolve_in_folder(self, folder: WatchedFolder, relative_path: str) -> Path:
        git_path = to_git_path(relative_path)
        if not git_path:
            raise ValueError("A file path is required")
        root = Path(os.path.abspath(folder.path))
        target = Path(os.path.abspath(root / git_path))
        if target != root and root not in target.parents:
            raise ValueError(f"Path escapes the watched folder: {relative_path}")
        return target

    def save_file(self, folder_id: str, relative_path: str, content: str) -> Path:
        """
        Write text to a file in the working tree, creating parent directories.

        The change is picked up by the scheduler like any other edit.

        Raises:
            StoreIOError: If the file cannot be written
        """
        folder = self.registry.get_folder(folder_id)
        target = self._resolve_in_folder(folder, relative_path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        except OSError as e:
            raise StoreIOError(f"Failed to save {relative_path}: {e}") from e
        logger.debug(f"Saved {target} ({len(content)} chars)")
        return target

    def create_file(self, folder_id: str, relative_path: str, content: str = "") -> Path:
        """
        Create a new file in the working tree.

        Raises:
            StoreIOError: If the file already exists or cannot be written
        """
        folder = self.registry.get_folder(folder_id)
        target = self._resolve_in_folder(folder, relative_path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "x", encoding="utf-8") as f:
                f.write(content)
        except FileExistsError as e:
            raise StoreIOError(f"File already exists: {relative_path}") from e
        except OSError as e:
            raise StoreIOError(f"Failed to create {relative_path}: {e}") from e
        logger.info(f"Created {target}")
        return target

    # ------------------------------------------------------------------
    # Store locations
    # ------------------------------------------------------------------

    def relocate(self, folder_id: str, new_location: Path) -> RelocationResult:
        return self.relocator.relocate(folder_id, new_location)

    def detect_existing_store(self, path: Path, name: Optional[str] = None) -> Optional[DetectedStore]:
        config = self.registry.config
        return detect_existing_store(
            Path(path).expanduser(),
            name,
            custom_root=config.default_custom_store_root,
            home=self._home,
        )

