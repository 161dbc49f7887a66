"""
History store locations: defaults, custom roots, detection of existing stores.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..history.exceptions import HistoryStoreError
from ..history.store import DEFAULT_STORE_DIR, HistoryStore, is_repository

logger = logging.getLogger(__name__)

CUSTOM_STORE_SUFFIX = "-git"
BACKUP_MARKER = "-backup-"

# Roots where earlier setups commonly kept custom stores, relative to home
COMMON_CUSTOM_ROOTS = [
    Path("LocalVersioning"),
    Path(".local-versioning") / "repos",
    Path("Documents") / "LocalVersioning",
]


@dataclass
class DetectedStore:
    """An existing history store found for a folder."""
    path: Path
    commit_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"found": True, "path": str(self.path), "commit_count": self.commit_count}


def default_store_location(folder_path: Path) -> Path:
    """Store kept inside the watched folder."""
    return Path(folder_path) / DEFAULT_STORE_DIR


def custom_store_location(root: Path, folder_name: str) -> Path:
    """Store for one folder under a shared custom root: ``<root>/<name>-git``."""
    return Path(root).expanduser() / f"{folder_name}{CUSTOM_STORE_SUFFIX}"


def is_valid_store(path: Path) -> bool:
    """Check that a directory has the layout of a git repository."""
    return is_repository(path)


def candidate_locations(
    folder_path: Path,
    folder_name: str,
    custom_root: Optional[Path] = None,
    home: Optional[Path] = None,
) -> List[Path]:
    """Places an existing store for this folder may live, in priority order."""
    home = Path(home) if home else Path.home()
    candidates = [default_store_location(folder_path)]
    if custom_root:
        candidates.append(custom_store_location(custom_root, folder_name))
    for root in COMMON_CUSTOM_ROOTS:
        candidates.append(custom_store_location(home / root, folder_name))
    return candidates


def detect_existing_store(
    folder_path: Path,
    folder_name: Optional[str] = None,
    custom_root: Optional[Path] = None,
    home: Optional[Path] = None,
) -> Optional[DetectedStore]:
    """
    Find an existing history store for a folder.

    Args:
        folder_path: Watched folder
        folder_name: Name used for custom store directories (default: folder base name)
        custom_root: Configured default custom store root, checked second
        home: Home directory for the common custom roots (default: the user's home)

    Returns:
        The first valid store found, or None
    """
    folder_path = Path(folder_path)
    folder_name = folder_name or folder_path.name

    for candidate in candidate_locations(folder_path, folder_name, custom_root, home):
        logger.debug(f"Checking for history store at {candidate}")
        if not is_valid_store(candidate):
            continue
        store = HistoryStore(folder_path, candidate)
        try:
            count = store.commit_count()
        except HistoryStoreError as e:
            logger.warning(f"Could not count commits in {candidate}: {e}")
            count = 0
        logger.info(f"Found existing history store at {candidate} ({count} commit(s))")
        return DetectedStore(path=candidate, commit_count=count)

    logger.info(f"No existing history store found for {folder_path}")
    return None


def backup_path(location: Path, moment: Optional[datetime] = None) -> Path:
    """
    Free path to rename a store aside: ``<location>-backup-<YYYY-MM-DDTHH-MM-SS>``.

    A numeric suffix is appended when a backup from the same second exists.
    """
    moment = moment or datetime.now(timezone.utc)
    stamp = moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
    location = Path(location)
    base = location.with_name(f"{location.name}{BACKUP_MARKER}{stamp}")
    candidate = base
    counter = 1
    while candidate.exists():
        candidate = base.with_name(f"{base.name}-{counter}")
        counter += 1
    return candidate
