"""Git-backed history store for one watched folder."""

import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable, List, Optional

from .exceptions import (
    CommitError,
    GitCommandError,
    NotFoundError,
    StoreInitError,
    StoreIOError,
)
from .git import AUTHOR_EMAIL, AUTHOR_NAME, GitRunner
from .models import (
    CURRENT_REF,
    DELETED_REF,
    Commit,
    DiffResult,
    auto_commit_message,
    initial_commit_message,
    restore_commit_message,
    to_git_path,
)

logger = logging.getLogger(__name__)

DEFAULT_STORE_DIR = ".git"
IGNORE_FILE_NAME = ".gitignore"
DEFAULT_IGNORE_LINES = [
    ".DS_Store",
    "node_modules/",
    ".git/",
    "*.tmp",
    "*.log",
    ".git-backup-*/",
]

# Pathspecs are file names, never globs.
_LITERAL = {"GIT_LITERAL_PATHSPECS": "1"}
_FIELD_SEP = "\x1f"


def _decode(blob: bytes) -> str:
    return blob.decode("utf-8", errors="replace")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_repository(path: Path) -> bool:
    """Check that a directory has the layout of a git repository."""
    path = Path(path)
    return (
        path.is_dir()
        and (path / "HEAD").exists()
        and (path / "objects").exists()
        and (path / "refs").exists()
    )


class HistoryStore:
    """
    Durable, queryable record of file snapshots for one folder.

    The store is a git repository at ``storage_location`` whose work tree
    is ``working_path``. All git calls for one store are serialized, so
    reads issued during an in-flight commit wait for it to finish.
    """

    def __init__(
        self,
        working_path: Path,
        storage_location: Optional[Path] = None,
        clock: Optional[Callable[[], datetime]] = None,
        git_binary: str = "git",
    ):
        """
        Initialize the store handle. Nothing is written until initialize() or commit().

        Args:
            working_path: Directory whose files are versioned
            storage_location: Repository directory (default: <working_path>/.git)
            clock: Returns the current time; used for commit dates and messages
            git_binary: Name or path of the git executable
        """
        self.working_path = Path(os.path.abspath(working_path))
        self.storage_location = (
            Path(os.path.abspath(storage_location)) if storage_location
            else self.working_path / DEFAULT_STORE_DIR
        )
        self._clock = clock or _utc_now
        self._git = GitRunner(self.storage_location, self.working_path, binary=git_binary)
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Repository lifecycle
    # ------------------------------------------------------------------

    def exists(self) -> bool:
        """Check whether a git repository exists at the storage location."""
        return is_repository(self.storage_location)

    def initialize(self) -> None:
        """
        Create the store if missing and snapshot any files already present.

        Idempotent: an existing store is left untouched apart from making
        sure it is excluded from its own work tree.

        Raises:
            StoreInitError: If the store cannot be created or the initial commit fails
        """
        with self._lock:
            if self.exists():
                logger.debug(f"History store already present at {self.storage_location}")
                try:
                    self._ensure_excluded()
                except OSError as e:
                    raise StoreInitError(f"Failed to open history store: {e}") from e
                return

            logger.info(f"Initializing history store for {self.working_path} at {self.storage_location}")
            try:
                wrote_ignore = self._create_store()
                self._git.run(["add", "-A"])
                tracked = self._git.null_separated(["ls-files", "-z"])
                if wrote_ignore:
                    tracked = [p for p in tracked if p != IGNORE_FILE_NAME]
                if tracked:
                    now = self._clock()
                    commit_hash = self._commit_index(initial_commit_message(now), now)
                    logger.info(f"Initial commit {commit_hash[:7]} with {len(tracked)} file(s)")
                else:
                    logger.info("No files to commit initially, will commit on first change")
            except (GitCommandError, OSError) as e:
                raise StoreInitError(f"Failed to initialize history store: {e}") from e

    def _create_store(self) -> bool:
        """Create an empty repository. Returns True if a default ignore file was written."""
        if not self.working_path.is_dir():
            raise StoreInitError(f"Working folder does not exist: {self.working_path}")
        location = self.storage_location
        if location.exists() and (not location.is_dir() or any(location.iterdir())):
            raise StoreInitError(f"{location} exists and is not a git repository")
        location.parent.mkdir(parents=True, exist_ok=True)
        self._git.run(["init", "--quiet"])
        self._git.run(["config", "user.name", AUTHOR_NAME])
        self._git.run(["config", "user.email", AUTHOR_EMAIL])
        self._ensure_excluded()

        ignore_file = self.working_path / IGNORE_FILE_NAME
        if ignore_file.exists():
            return False
        ignore_file.write_text("\n".join(DEFAULT_IGNORE_LINES) + "\n", encoding="utf-8")
        logger.debug(f"Created {ignore_file}")
        return True

    def _ensure_excluded(self) -> None:
        """Keep a store that lives inside its own work tree out of the snapshots."""
        try:
            relative = self.storage_location.resolve().relative_to(self.working_path.resolve())
        except ValueError:
            return
        if relative.as_posix() == DEFAULT_STORE_DIR or not self.storage_location.is_dir():
            return

        exclude_file = self.storage_location / "info" / "exclude"
        line = f"/{relative.as_posix()}/"
        existing = exclude_file.read_text(encoding="utf-8") if exclude_file.exists() else ""
        if line in existing.splitlines():
            return
        exclude_file.parent.mkdir(parents=True, exist_ok=True)
        with open(exclude_file, "a", encoding="utf-8") as f:
            if existing and not existing.endswith("\n"):
                f.write("\n")
            f.write(line + "\n")

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def commit(self, changed_paths: Iterable[str]) -> str:
        """
        Record the given paths as a new snapshot.

        The very first commit stages the whole tree so files that existed
        before tracking began are captured together with the change.

        Args:
            changed_paths: Paths relative to the working tree

        Returns:
            The new commit hash, or "" if there was nothing to record

        Raises:
            CommitError: If staging or committing fails
        """
        paths = sorted({to_git_path(p) for p in changed_paths} - {""})
        if not paths:
            logger.debug("No files to commit")
            return ""

        with self._lock:
            try:
                if not self.exists():
                    logger.info(f"History store missing, creating at {self.storage_location}")
                    self._create_store()

                first = not self.has_commits()
                stageable = paths
                if first:
                    logger.info("First commit, adding all files")
                    self._git.run(["add", "-A"])
                else:
                    stageable = self._stageable(paths)
                    if not stageable:
                        logger.debug(f"Nothing stageable among {paths}")
                        return ""
                    self._git.run(["add", "-A", "--"] + stageable, env=_LITERAL)

                if not self._has_staged_changes(has_head=not first):
                    logger.debug("No staged changes to commit")
                    return ""

                now = self._clock()
                message = initial_commit_message(now) if first else auto_commit_message(stageable, now)
                commit_hash = self._commit_index(message, now)
                logger.info(f"Created commit {commit_hash[:7]}: {message}")
                return commit_hash
            except (GitCommandError, StoreInitError, OSError) as e:
                raise CommitError(f"Failed to commit changes: {e}") from e

    def _stageable(self, paths: List[str]) -> List[str]:
        """Paths that are tracked (possibly deleted) or untracked and not ignored."""
        listed = self._git.null_separated(
            ["ls-files", "-z", "--cached", "--others", "--exclude-standard", "--"] + paths,
            env=_LITERAL,
        )
        return sorted(set(listed))

    def _has_staged_changes(self, has_head: bool) -> bool:
        if not has_head:
            return bool(self._git.null_separated(["ls-files", "-z"]))
        proc = self._git.run(["diff", "--cached", "--quiet"], check=False)
        if proc.returncode not in (0, 1):
            raise GitCommandError(
                f"git diff failed ({proc.returncode})",
                args=["diff", "--cached", "--quiet"],
                returncode=proc.returncode,
                stderr=_decode(proc.stderr),
            )
        return proc.returncode == 1

    def _commit_index(self, message: str, moment: datetime, allow_empty: bool = False) -> str:
        stamp = f"{int(moment.timestamp())} +0000"
        args = ["commit", "--quiet", "--no-verify", "-m", message]
        if allow_empty:
            args.append("--allow-empty")
        self._git.run(args, env={"GIT_AUTHOR_DATE": stamp, "GIT_COMMITTER_DATE": stamp})
        return self._git.output(["rev-parse", "HEAD"]).strip()

    def restore_file(self, relative_path: str, ref: str) -> str:
        """
        Write a historical version back to disk and record it as a new commit.

        Args:
            relative_path: Path relative to the working tree
            ref: Commit to restore from (resilient lookup applies)

        Returns:
            Hash of the restore commit

        Raises:
            NotFoundError: If no version of the file can be found
            StoreIOError: If the file cannot be written
            CommitError: If the restore cannot be committed
        """
        git_path = to_git_path(relative_path)
        with self._lock:
            blob = self._resilient_blob(ref, git_path)
            target = self.working_path / git_path
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(blob)
            except OSError as e:
                raise StoreIOError(f"Failed to restore file {relative_path}: {e}") from e

            source = self.resolve_ref(ref) or ref
            try:
                self._git.run(["add", "-A", "-f", "--", git_path], env=_LITERAL)
                now = self._clock()
                message = restore_commit_message(git_path, source, now)
                commit_hash = self._commit_index(message, now, allow_empty=True)
            except GitCommandError as e:
                raise CommitError(f"Failed to record restore of {relative_path}: {e}") from e
            logger.info(f"Restored {git_path} from {source[:7]} as {commit_hash[:7]}")
            return commit_hash

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def has_commits(self) -> bool:
        """Check whether the ancestry chain is non-empty."""
        with self._lock:
            if not self.exists():
                return False
            return self._git.succeeds(["rev-parse", "--verify", "--quiet", "HEAD^{commit}"])

    def resolve_ref(self, ref: str) -> Optional[str]:
        """Resolve a ref to a full commit hash, or None if it names no commit."""
        with self._lock:
            if not self.exists():
                return None
            proc = self._git.run(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], check=False)
            if proc.returncode != 0:
                return None
            return _decode(proc.stdout).strip() or None

    def commit_count(self) -> int:
        with self._lock:
            if not self.has_commits():
                return 0
            try:
                return int(self._git.output(["rev-list", "--count", "HEAD"]).strip() or 0)
            except GitCommandError as e:
                raise StoreIOError(f"Failed to count commits: {e}") from e

    def last_commit_time(self) -> Optional[datetime]:
        """Author date of the most recent commit, or None when there are no commits."""
        with self._lock:
            if not self.has_commits():
                return None
            try:
                raw = self._git.output(["log", "-1", "--format=%at"]).strip()
            except GitCommandError as e:
                raise StoreIOError(f"Failed to read last commit: {e}") from e
            return datetime.fromtimestamp(int(raw), timezone.utc) if raw else None

    def has_uncommitted_changes(self) -> bool:
        with self._lock:
            if not self.exists():
                return False
            proc = self._git.run(["status", "--porcelain"], check=False)
            return proc.returncode == 0 and bool(proc.stdout.strip())

    def get_commits(self, limit: int = 50) -> List[Commit]:
        """
        List commits, newest first, with the paths each one changed.

        Args:
            limit: Maximum number of commits to return

        Returns:
            Commits newest first; empty when the store has no commits

        Raises:
            StoreIOError: If the log cannot be read
        """
        with self._lock:
            if not self.has_commits():
                return []
            try:
                raw = self._git.output(
                    ["log", f"--max-count={int(limit)}", "-z", "--format=%H%x1f%an%x1f%at%x1f%B"]
                )
            except GitCommandError as e:
                raise StoreIOError(f"Failed to get commits: {e}") from e

            entries = [entry for entry in raw.split("\0") if entry.strip()]
            commits = []
            for index, entry in enumerate(entries):
                commit_hash, author, at, message = entry.lstrip("\n").split(_FIELD_SEP, 3)
                oldest = index == len(entries) - 1
                commits.append(Commit(
                    hash=commit_hash,
                    message=message.strip(),
                    timestamp=datetime.fromtimestamp(int(at), timezone.utc),
                    author=author,
                    changed_paths=self._changed_paths(commit_hash, oldest),
                ))
            return commits

    def _changed_paths(self, commit_hash: str, oldest: bool) -> List[str]:
        if not oldest:
            proc = self._git.run(
                ["diff-tree", "-r", "-z", "--name-only", "--no-commit-id", f"{commit_hash}^", commit_hash],
                check=False,
            )
            if proc.returncode == 0:
                return [p for p in _decode(proc.stdout).split("\0") if p]
            logger.debug(f"Failed to diff {commit_hash[:7]} against its parent, listing its tree")
        return self._tree_paths(commit_hash)

    def _tree_paths(self, commit_hash: str) -> List[str]:
        proc = self._git.run(["ls-tree", "-r", "-z", "--name-only", commit_hash], check=False)
        if proc.returncode != 0:
            logger.warning(f"Failed to get files for commit {commit_hash[:7]}: {_decode(proc.stderr).strip()}")
            return []
        return [p for p in _decode(proc.stdout).split("\0") if p]

    def _read_blob(self, ref: str, git_path: str) -> Optional[bytes]:
        """Content of a path at a ref, or None if the path is absent there."""
        if not self.exists():
            return None
        proc = self._git.run(["cat-file", "blob", f"{ref}:{git_path}"], check=False)
        if proc.returncode != 0:
            return None
        return proc.stdout

    def get_file_content(self, ref: str, relative_path: str) -> str:
        """
        Content of a path exactly as recorded at a commit.

        Raises:
            NotFoundError: If the path did not exist at that point in history
        """
        git_path = to_git_path(relative_path)
        with self._lock:
            blob = self._read_blob(ref, git_path)
        if blob is None:
            raise NotFoundError(f"{relative_path} not found at {ref}", ref=ref, path=git_path)
        return _decode(blob)

    def get_file_content_resilient(self, ref: str, relative_path: str) -> str:
        """
        Content of a path at a commit, or its last version before that commit.

        Used when the file may have been deleted exactly at ``ref``.

        Raises:
            NotFoundError: If no earlier version of the file exists
        """
        with self._lock:
            return _decode(self._resilient_blob(ref, to_git_path(relative_path)))

    def _resilient_blob(self, ref: str, git_path: str) -> bytes:
        blob = self._read_blob(ref, git_path)
        if blob is not None:
            return blob

        logger.debug(f"{git_path} not found at {ref}, searching earlier commits")
        target = self.resolve_ref(ref)
        if target is None:
            raise NotFoundError(f"Unknown ref: {ref}", ref=ref, path=git_path)

        touching = self._touching_commits(target, git_path)
        if not touching or touching[0] != target:
            raise NotFoundError(f"Commit {ref} not found in history of {git_path}", ref=ref, path=git_path)

        for candidate in touching[1:]:
            blob = self._read_blob(candidate, git_path)
            if blob is not None:
                return blob
        raise NotFoundError(f"{git_path} not found in any commit in history", ref=ref, path=git_path)

    def _touching_commits(self, target: str, git_path: str) -> List[str]:
        """Commits reachable from target that touched the path, newest first."""
        proc = self._git.run(["rev-list", target, "--", git_path], check=False, env=_LITERAL)
        if proc.returncode != 0:
            return []
        return _decode(proc.stdout).split()

    def get_diff(self, relative_path: str, old_ref: str, new_ref: Optional[str] = None) -> DiffResult:
        """
        Old and new content of a file between two points.

        Args:
            relative_path: Path relative to the working tree
            old_ref: Commit for the old side
            new_ref: Commit for the new side; omitted or "current" reads the live file

        Raises:
            NotFoundError: If either historical side cannot be found
            StoreIOError: If the live file cannot be read
        """
        git_path = to_git_path(relative_path)
        with self._lock:
            old_content = _decode(self._resilient_blob(old_ref, git_path))
            if new_ref and new_ref != CURRENT_REF:
                new_content = _decode(self._resilient_blob(new_ref, git_path))
                resolved_new = new_ref
            else:
                disk_path = self.working_path / git_path
                if disk_path.is_file():
                    try:
                        new_content = _decode(disk_path.read_bytes())
                    except OSError as e:
                        raise StoreIOError(f"Failed to read {relative_path}: {e}") from e
                    resolved_new = CURRENT_REF
                else:
                    new_content = ""
                    resolved_new = DELETED_REF

        return DiffResult(
            file_name=PurePosixPath(git_path).name,
            old_content=old_content,
            new_content=new_content,
            old_ref=old_ref,
            new_ref=resolved_new,
        )

    def __repr__(self) -> str:
        return f"HistoryStore(working_path={str(self.working_path)!r}, storage_location={str(self.storage_location)!r})"
