"""Configuration for the file watcher package."""

import fnmatch
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import List

from .exceptions import InvalidWatcherConfigError
from .models import CommitStrategy


DEFAULT_IGNORE_PATTERNS = [
    "**/node_modules/**",
    "**/.git/**",
    "**/.DS_Store",
    "**/*.tmp",
    "**/*.log",
    "**/.local-versioning/**",
]

MIN_PERIODIC_INTERVAL_MINUTES = 1


@dataclass
class WatcherConfig:
    """
    Configuration options for a folder's change scheduler.

    Attributes:
        commit_strategy: Commit after a quiet period (on-save) or on a fixed tick (periodic)
        debounce_ms: Quiet period before an on-save commit
        periodic_interval_minutes: Tick period for the periodic strategy
        ignore_patterns: Glob patterns for files to ignore
        recursive: Whether to watch subdirectories
    """
    commit_strategy: CommitStrategy = CommitStrategy.ON_SAVE
    debounce_ms: int = 2000
    periodic_interval_minutes: int = 5
    ignore_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_IGNORE_PATTERNS))
    recursive: bool = True

    def __post_init__(self):
        self.commit_strategy = CommitStrategy.parse(self.commit_strategy)
        if self.periodic_interval_minutes < MIN_PERIODIC_INTERVAL_MINUTES:
            raise InvalidWatcherConfigError(
                f"periodic_interval_minutes must be at least {MIN_PERIODIC_INTERVAL_MINUTES}, "
                f"got {self.periodic_interval_minutes}"
            )
        if self.debounce_ms < 0:
            raise InvalidWatcherConfigError(f"debounce_ms must not be negative: {self.debounce_ms}")

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0

    @property
    def periodic_interval_seconds(self) -> float:
        return self.periodic_interval_minutes * 60.0

    def should_ignore(self, path) -> bool:
        """
        Check if a path should be ignored based on ignore patterns.

        Patterns match against any run of consecutive path components, so
        ``**/node_modules/**``, ``node_modules/*`` and ``node_modules`` all
        ignore everything under a node_modules directory at any depth.

        Args:
            path: Path relative to the watched folder

        Returns:
            True if the path should be ignored
        """
        parts = [p for p in PurePosixPath(str(path).replace("\\", "/")).parts if p not in ("", "/")]
        if not parts:
            return False

        for pattern in self.ignore_patterns:
            core = _strip_pattern(pattern)
            if not core:
                continue
            width = core.count("/") + 1
            for start in range(len(parts) - width + 1):
                if fnmatch.fnmatch("/".join(parts[start:start + width]), core):
                    return True

        return False


def _strip_pattern(pattern: str) -> str:
    """Reduce a glob to the component run it must match."""
    core = pattern.strip().replace("\\", "/")
    while core.startswith("**/"):
        core = core[3:]
    for suffix in ("/**", "/*", "/"):
        if core.endswith(suffix):
            core = core[: -len(suffix)]
            break
    return core.strip("/")
