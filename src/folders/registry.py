"""
JSON persistence of watched folders and application settings.
"""

import json
import logging
import os
import threading
from dataclasses import replace
from pathlib import Path
from typing import Any, List, Optional

from .exceptions import ConfigFileError, FolderAlreadyExistsError, FolderNotFoundError
from .models import AppConfig, StoreLocationMode, WatchedFolder

logger = logging.getLogger(__name__)

HOME_ENV_VAR = "LOCAL_VERSIONING_HOME"
CONFIG_FILE_NAME = "config.json"

UPDATABLE_FIELDS = {
    "name",
    "commit_strategy",
    "periodic_interval",
    "ignore_patterns",
    "watch_subfolders",
    "is_active",
    "custom_store_path",
}


def default_config_home() -> Path:
    """Directory holding the config file and logs."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".local-versioning"


def default_config_path() -> Path:
    return default_config_home() / CONFIG_FILE_NAME


def _copy(folder: WatchedFolder, **changes: Any) -> WatchedFolder:
    """Copy of a folder that shares no mutable state with the original."""
    copied = replace(folder, **changes)
    copied.ignore_patterns = list(copied.ignore_patterns)
    return copied


class FolderRegistry:
    """
    Thread-safe registry of watched folders.

    Every mutation is written straight back to the JSON file. Without a
    config path the registry lives in memory only.
    """

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = Path(config_path) if config_path else None
        self._lock = threading.RLock()
        self._config = self._load()

    def _load(self) -> AppConfig:
        if self.config_path is None or not self.config_path.exists():
            return AppConfig()
        try:
            data = json.loads(self.config_path.read_text(encoding="utf-8"))
            config = AppConfig.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Failed to load config from {self.config_path}, using defaults: {e}")
            return AppConfig()
        logger.debug(f"Loaded {len(config.watched_folders)} folder(s) from {self.config_path}")
        return config

    def _save(self) -> None:
        if self.config_path is None:
            return
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.config_path.with_suffix(".json.tmp")
            tmp_path.write_text(json.dumps(self._config.to_dict(), indent=2), encoding="utf-8")
            os.replace(tmp_path, self.config_path)
        except OSError as e:
            raise ConfigFileError(f"Failed to save config to {self.config_path}: {e}") from e

    @property
    def config(self) -> AppConfig:
        """Snapshot of the current configuration."""
        with self._lock:
            return AppConfig.from_dict(self._config.to_dict())

    def get_folders(self) -> List[WatchedFolder]:
        with self._lock:
            return [_copy(f) for f in self._config.watched_folders]

    def get_folder(self, folder_id: str) -> WatchedFolder:
        """
        Look up a folder by id.

        Raises:
            FolderNotFoundError: If no folder has this id
        """
        with self._lock:
            for folder in self._config.watched_folders:
                if folder.id == folder_id:
                    return _copy(folder)
        raise FolderNotFoundError(f"Folder not found: {folder_id}")

    def find_by_path(self, path: Path) -> Optional[WatchedFolder]:
        target = Path(os.path.abspath(path))
        with self._lock:
            for folder in self._config.watched_folders:
                if Path(os.path.abspath(folder.path)) == target:
                    return _copy(folder)
        return None

    def add_folder(self, path: Path, **options: Any) -> WatchedFolder:
        """
        Register a folder.

        Args:
            path: Folder to version
            **options: Any WatchedFolder field except id and path

        Raises:
            FolderAlreadyExistsError: If the path is already registered
            ValueError: If an option is unknown or out of range
        """
        unknown = set(options) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown folder option(s): {', '.join(sorted(unknown))}")

        path = Path(os.path.abspath(Path(path).expanduser()))
        options = {k: v for k, v in options.items() if v is not None}
        folder = _copy(WatchedFolder(path=path, **options))
        folder.watcher_config()

        with self._lock:
            if self.find_by_path(path) is not None:
                raise FolderAlreadyExistsError(f"Folder is already watched: {path}")
            self._config.watched_folders.append(folder)
            self._save()
        logger.info(f"Added folder {folder.name} ({folder.id})")
        return _copy(folder)

    def remove_folder(self, folder_id: str) -> WatchedFolder:
        """Unregister a folder. Its history on disk is left untouched."""
        with self._lock:
            folder = self.get_folder(folder_id)
            self._config.watched_folders = [
                f for f in self._config.watched_folders if f.id != folder_id
            ]
            self._save()
        logger.info(f"Removed folder {folder.name} ({folder_id})")
        return folder

    def update_folder(self, folder_id: str, **updates: Any) -> WatchedFolder:
        """
        Change folder settings.

        Pass custom_store_path=None to clear the store override.

        Raises:
            FolderNotFoundError: If no folder has this id
            ValueError: If a field is unknown or out of range
        """
        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown folder field(s): {', '.join(sorted(unknown))}")

        with self._lock:
            for index, folder in enumerate(self._config.watched_folders):
                if folder.id == folder_id:
                    updated = _copy(folder, **updates)
                    updated.watcher_config()
                    self._config.watched_folders[index] = updated
                    self._save()
                    return _copy(updated)
        raise FolderNotFoundError(f"Folder not found: {folder_id}")

    def update_settings(
        self,
        default_store_location: Optional[str] = None,
        default_custom_store_root: Optional[Path] = None,
    ) -> AppConfig:
        """Change the defaults applied to newly added folders."""
        with self._lock:
            if default_store_location is not None:
                self._config.default_store_location = StoreLocationMode(default_store_location)
            if default_custom_store_root is not None:
                self._config.default_custom_store_root = Path(default_custom_store_root)
            self._save()
            return self.config
