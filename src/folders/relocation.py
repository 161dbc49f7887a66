"""
Moving a folder's history store to a new location.
"""

import logging
import os
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from ..history.exceptions import HistoryStoreError
from ..history.store import HistoryStore
from .exceptions import RelocationConflictError, RelocationError, SourceMissingError
from .locations import backup_path
from .models import WatchedFolder

logger = logging.getLogger(__name__)


class RelocationAction(Enum):
    """What a relocation actually did."""
    UNCHANGED = "unchanged"
    CONFIG_ONLY = "config_only"
    MOVED = "moved"
    REPLACED_DESTINATION = "replaced_destination"
    KEPT_DESTINATION = "kept_destination"


@dataclass
class RelocationResult:
    """
    Outcome of a relocation.

    Attributes:
        action: What was done
        old_location: Store location before the call
        new_location: Store location after the call
        backup_location: Where the losing store was renamed to, on conflict
    """
    action: RelocationAction
    old_location: Path
    new_location: Path
    backup_location: Optional[Path] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "old_location": str(self.old_location),
            "new_location": str(self.new_location),
            "backup_location": str(self.backup_location) if self.backup_location else None,
        }


def _normalize(path: Path) -> Path:
    return Path(os.path.abspath(Path(path).expanduser()))


class RelocationCoordinator:
    """
    Moves history stores between locations with conflict resolution.

    The host owns the per-folder schedulers and stores and must provide:
    ``suspend(folder_id) -> bool`` (stop the scheduler, wait for an
    in-flight commit, return whether it was watching),
    ``resume(folder_id) -> bool``, ``discard_store(folder_id)`` and
    ``get_store(folder_id) -> HistoryStore``.
    """

    def __init__(self, registry, host, clock: Optional[Callable[[], datetime]] = None):
        self.registry = registry
        self.host = host
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def relocate(self, folder_id: str, new_location: Path) -> RelocationResult:
        """
        Move a folder's history store to new_location.

        The scheduler is stopped for the duration and restarted afterwards
        if it was watching before.

        Raises:
            FolderNotFoundError: If the folder is unknown
            SourceMissingError: If neither the current nor the new location holds a store
            RelocationConflictError: If the relocated store cannot be queried
                (the configuration change is kept)
            RelocationError: If moving or renaming fails
        """
        folder = self.registry.get_folder(folder_id)
        new_location = _normalize(new_location)

        was_watching = self.host.suspend(folder_id)
        try:
            result = self._relocate(folder, new_location)
        finally:
            if was_watching and not self.host.resume(folder_id):
                logger.error(f"Failed to resume watching {folder.name} after relocation")

        logger.info(
            f"Relocated history of {folder.name}: {result.action.value} "
            f"({result.old_location} -> {result.new_location})"
        )
        return result

    def _relocate(self, folder: WatchedFolder, new_location: Path) -> RelocationResult:
        old_location = _normalize(folder.storage_location)

        if old_location == new_location:
            return RelocationResult(RelocationAction.UNCHANGED, old_location, new_location)

        if not old_location.exists():
            if new_location.exists():
                logger.info(f"{new_location} already holds a store, updating configuration only")
                self._point_at(folder, new_location)
                return RelocationResult(RelocationAction.CONFIG_ONLY, old_location, new_location)
            raise SourceMissingError(f"No history store found at {old_location}")

        backup = None
        try:
            new_location.parent.mkdir(parents=True, exist_ok=True)
            if not new_location.exists():
                shutil.move(str(old_location), str(new_location))
                action = RelocationAction.MOVED
            elif self._source_wins(folder, old_location, new_location):
                backup = backup_path(new_location, self._clock())
                logger.info(f"Backing up existing store at {new_location} to {backup}")
                os.rename(new_location, backup)
                shutil.move(str(old_location), str(new_location))
                action = RelocationAction.REPLACED_DESTINATION
            else:
                backup = backup_path(old_location, self._clock())
                logger.info(f"Keeping newer store at {new_location}, backing up source to {backup}")
                os.rename(old_location, backup)
                action = RelocationAction.KEPT_DESTINATION
        except OSError as e:
            raise RelocationError(f"Failed to move {old_location} to {new_location}: {e}") from e

        self._point_at(folder, new_location)
        return RelocationResult(action, old_location, new_location, backup)

    def _source_wins(self, folder: WatchedFolder, source: Path, destination: Path) -> bool:
        """The source replaces the destination if the destination has no commits or is strictly older."""
        source_time = self._last_commit_time(folder, source)
        destination_time = self._last_commit_time(folder, destination)
        logger.debug(f"Source last commit: {source_time}, destination last commit: {destination_time}")
        if destination_time is None:
            return True
        if source_time is None:
            return False
        return source_time > destination_time

    @staticmethod
    def _last_commit_time(folder: WatchedFolder, location: Path) -> Optional[datetime]:
        try:
            return HistoryStore(folder.path, location).last_commit_time()
        except HistoryStoreError as e:
            logger.warning(f"Could not read last commit from {location}: {e}")
            return None

    def _point_at(self, folder: WatchedFolder, new_location: Path) -> None:
        """Record the new location, drop the cached store and check the result is queryable."""
        default = _normalize(folder.default_store_location)
        custom = None if new_location == default else new_location
        self.registry.update_folder(folder.id, custom_store_path=custom)
        self.host.discard_store(folder.id)

        try:
            self.host.get_store(folder.id).get_commits(1)
        except HistoryStoreError as e:
            raise RelocationConflictError(
                f"Store at {new_location} is not accessible after relocation: {e}"
            ) from e
