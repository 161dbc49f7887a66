"""Data models for watched folders and the persisted application config."""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..history.store import DEFAULT_STORE_DIR
from ..watcher.config import DEFAULT_IGNORE_PATTERNS, WatcherConfig
from ..watcher.models import CommitStrategy


class StoreLocationMode(Enum):
    """Where new folders keep their history store by default."""
    WATCHED_FOLDER = "watched-folder"
    CUSTOM = "custom"


# Keys written by earlier releases of the config file
_LEGACY_KEYS = {
    "commitStrategy": "commit_strategy",
    "periodicInterval": "periodic_interval",
    "ignorePatterns": "ignore_patterns",
    "watchSubfolders": "watch_subfolders",
    "isActive": "is_active",
    "customGitPath": "custom_store_path",
    "watchedFolders": "watched_folders",
    "defaultGitLocation": "default_store_location",
    "defaultCustomGitPath": "default_custom_store_root",
}


def _normalize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    return {_LEGACY_KEYS.get(key, key): value for key, value in data.items()}


@dataclass
class WatchedFolder:
    """
    A folder under continuous version history.

    Attributes:
        id: Stable identifier
        path: Working path whose files are versioned
        name: Display name (defaults to the folder's base name)
        commit_strategy: on-save or periodic
        periodic_interval: Minutes between periodic commits
        ignore_patterns: Glob patterns excluded from watching
        watch_subfolders: Watch the whole subtree, or direct children only
        is_active: Whether the folder should be watched
        custom_store_path: History store location overriding the default
    """
    path: Path
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    commit_strategy: CommitStrategy = CommitStrategy.ON_SAVE
    periodic_interval: int = 5
    ignore_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_IGNORE_PATTERNS))
    watch_subfolders: bool = True
    is_active: bool = True
    custom_store_path: Optional[Path] = None

    def __post_init__(self):
        self.path = Path(self.path)
        if not self.name:
            self.name = self.path.name
        self.commit_strategy = CommitStrategy.parse(self.commit_strategy)
        self.periodic_interval = int(self.periodic_interval)
        if self.custom_store_path:
            self.custom_store_path = Path(self.custom_store_path)
        else:
            self.custom_store_path = None

    @property
    def default_store_location(self) -> Path:
        return self.path / DEFAULT_STORE_DIR

    @property
    def storage_location(self) -> Path:
        """Effective history store location."""
        return self.custom_store_path or self.default_store_location

    def watcher_config(self) -> WatcherConfig:
        """Scheduler configuration for this folder."""
        return WatcherConfig(
            commit_strategy=self.commit_strategy,
            periodic_interval_minutes=self.periodic_interval,
            ignore_patterns=list(self.ignore_patterns),
            recursive=self.watch_subfolders,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "path": str(self.path),
            "name": self.name,
            "commit_strategy": self.commit_strategy.value,
            "periodic_interval": self.periodic_interval,
            "ignore_patterns": list(self.ignore_patterns),
            "watch_subfolders": self.watch_subfolders,
            "is_active": self.is_active,
            "custom_store_path": str(self.custom_store_path) if self.custom_store_path else None,
            "storage_location": str(self.storage_location),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WatchedFolder":
        data = _normalize_keys(data)
        kwargs = {
            "path": data["path"],
            "name": data.get("name", ""),
            "commit_strategy": data.get("commit_strategy", CommitStrategy.ON_SAVE.value),
            "periodic_interval": data.get("periodic_interval") or 5,
            "ignore_patterns": list(data.get("ignore_patterns", DEFAULT_IGNORE_PATTERNS)),
            "watch_subfolders": data.get("watch_subfolders", True),
            "is_active": data.get("is_active", True),
            "custom_store_path": data.get("custom_store_path"),
        }
        if data.get("id"):
            kwargs["id"] = data["id"]
        return cls(**kwargs)


@dataclass
class AppConfig:
    """Persisted application configuration."""
    watched_folders: List[WatchedFolder] = field(default_factory=list)
    default_store_location: StoreLocationMode = StoreLocationMode.WATCHED_FOLDER
    default_custom_store_root: Optional[Path] = None

    def __post_init__(self):
        if not isinstance(self.default_store_location, StoreLocationMode):
            self.default_store_location = StoreLocationMode(self.default_store_location)
        if self.default_custom_store_root:
            self.default_custom_store_root = Path(self.default_custom_store_root)
        else:
            self.default_custom_store_root = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "watched_folders": [f.to_dict() for f in self.watched_folders],
            "default_store_location": self.default_store_location.value,
            "default_custom_store_root": (
                str(self.default_custom_store_root) if self.default_custom_store_root else None
            ),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        data = _normalize_keys(data)
        return cls(
            watched_folders=[WatchedFolder.from_dict(f) for f in data.get("watched_folders", [])],
            default_store_location=data.get(
                "default_store_location", StoreLocationMode.WATCHED_FOLDER.value
            ),
            default_custom_store_root=data.get("default_custom_store_root"),
        )
