"""Custom exceptions for the history store package."""


class HistoryStoreError(Exception):
    """Base exception for all history store errors."""
    pass


class GitCommandError(HistoryStoreError):
    """A git invocation exited with a non-zero status."""
    def __init__(self, message: str, args: list = None, returncode: int = None, stderr: str = ""):
        super().__init__(message)
        self.command = list(args or [])
        self.returncode = returncode
        self.stderr = stderr


class StoreInitError(HistoryStoreError):
    """History store cannot be created or opened."""
    pass


class CommitError(HistoryStoreError):
    """A commit attempt failed."""
    pass


class NotFoundError(HistoryStoreError):
    """Requested path or ref does not exist in history."""
    def __init__(self, message: str, ref: str = None, path: str = None):
        super().__init__(message)
        self.ref = ref
        self.path = path


class StoreIOError(HistoryStoreError):
    """Disk or store read/write failure."""
    pass
