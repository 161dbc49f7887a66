"""Custom exceptions for the file watcher package."""


class WatcherError(Exception):
    """Base exception for all watcher errors."""
    pass


class ObserverError(WatcherError):
    """The filesystem observer could not be attached or failed while running."""
    pass


class InvalidWatcherConfigError(WatcherError, ValueError):
    """Watcher configuration value is out of range."""
    pass
