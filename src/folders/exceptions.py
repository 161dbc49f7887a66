"""Custom exceptions for the folders package."""


class FolderError(Exception):
    """Base exception for folder management errors."""
    pass


class FolderNotFoundError(FolderError):
    """No watched folder has the requested id."""
    pass


class FolderAlreadyExistsError(FolderError):
    """The path is already a watched folder."""
    pass


class ConfigFileError(FolderError):
    """The config file could not be read or written."""
    pass


class RelocationError(FolderError):
    """Base exception for history store relocation errors."""
    pass


class SourceMissingError(RelocationError):
    """Nothing exists at the current store location and nothing at the target either."""
    pass


class RelocationConflictError(RelocationError):
    """The store is in an unexpected state after a move (e.g. not queryable)."""
    pass
