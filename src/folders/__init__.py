"""
Folders Package

Registry of watched folders and the service that owns each folder's
history store and change scheduler.

Features:
- JSON config file with add/remove/update of watched folders
- Default store inside the folder or under a custom root
- Detection of stores left by earlier setups
- Relocation of a store with newest-wins conflict resolution and backups
- Per-folder sessions: one failing folder never affects another
"""

from .models import WatchedFolder, AppConfig, StoreLocationMode

from .exceptions import (
    FolderError,
    FolderNotFoundError,
    FolderAlreadyExistsError,
    ConfigFileError,
    RelocationError,
    SourceMissingError,
    RelocationConflictError,
)

from .registry import FolderRegistry, default_config_home, default_config_path
from .locations import (
    DetectedStore,
    default_store_location,
    custom_store_location,
    is_valid_store,
    detect_existing_store,
    backup_path,
)
from .relocation import RelocationCoordinator, RelocationResult, RelocationAction
from .service import VersioningService, FolderSession


__all__ = [
    # Models
    "WatchedFolder",
    "AppConfig",
    "StoreLocationMode",
    # Exceptions
    "FolderError",
    "FolderNotFoundError",
    "FolderAlreadyExistsError",
    "ConfigFileError",
    "RelocationError",
    "SourceMissingError",
    "RelocationConflictError",
    # Registry
    "FolderRegistry",
    "default_config_home",
    "default_config_path",
    # Locations
    "DetectedStore",
    "default_store_location",
    "custom_store_location",
    "is_valid_store",
    "detect_existing_store",
    "backup_path",
    # Components
    "RelocationCoordinator",
    "RelocationResult",
    "RelocationAction",
    "VersioningService",
    "FolderSession",
]
