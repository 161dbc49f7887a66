"""Thin wrapper around the git executable for one store/working-tree pair."""

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .exceptions import GitCommandError

logger = logging.getLogger(__name__)

AUTHOR_NAME = "Local Versioning"
AUTHOR_EMAIL = "local@versioning.app"

# Inherited variables that would silently redirect git away from our store.
_SCRUBBED_ENV = ("GIT_DIR", "GIT_WORK_TREE", "GIT_INDEX_FILE", "GIT_OBJECT_DIRECTORY", "GIT_PREFIX")

_CONFIG_OVERRIDES = (
    ("core.quotepath", "off"),
    ("core.autocrlf", "false"),
    ("commit.gpgsign", "false"),
    ("init.defaultBranch", "main"),
    ("user.name", AUTHOR_NAME),
    ("user.email", AUTHOR_EMAIL),
)


class GitRunner:
    """
    Runs git against an explicit git directory and work tree.

    Every invocation passes ``--git-dir`` and ``--work-tree`` so the store
    may live inside the watched folder or at an arbitrary external path.
    """

    def __init__(self, git_dir: Path, work_tree: Path, binary: str = "git"):
        """
        Initialize the runner.

        Args:
            git_dir: Location of the repository directory
            work_tree: Directory whose files are versioned
            binary: Name or path of the git executable
        """
        self.git_dir = Path(git_dir)
        self.work_tree = Path(work_tree)
        self.binary = binary

    def _command(self, args: Sequence[str]) -> List[str]:
        cmd = [self.binary, f"--git-dir={self.git_dir}", f"--work-tree={self.work_tree}"]
        for key, value in _CONFIG_OVERRIDES:
            cmd.extend(["-c", f"{key}={value}"])
        cmd.extend(args)
        return cmd

    def _env(self, extra: Optional[Dict[str, str]]) -> Dict[str, str]:
        env = os.environ.copy()
        for key in _SCRUBBED_ENV:
            env.pop(key, None)
        env["GIT_TERMINAL_PROMPT"] = "0"
        if extra:
            env.update(extra)
        return env

    def run(
        self,
        args: Sequence[str],
        check: bool = True,
        env: Optional[Dict[str, str]] = None,
    ) -> subprocess.CompletedProcess:
        """
        Run a git subcommand.

        Args:
            args: Arguments after the global options
            check: Raise GitCommandError on a non-zero exit status
            env: Extra environment variables

        Returns:
            The completed process with bytes stdout/stderr

        Raises:
            GitCommandError: If git cannot be executed, or exits non-zero and check is set
        """
        cmd = self._command(args)
        cwd = str(self.work_tree) if self.work_tree.is_dir() else None
        logger.debug(f"git {' '.join(args)} (git-dir={self.git_dir})")
        try:
            proc = subprocess.run(
                cmd,
                cwd=cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                env=self._env(env),
            )
        except OSError as e:
            raise GitCommandError(f"Unable to run git: {e}", args=list(args)) from e

        if check and proc.returncode != 0:
            stderr = proc.stderr.decode("utf-8", errors="replace").strip()
            raise GitCommandError(
                f"git {args[0] if args else ''} failed ({proc.returncode}): {stderr}",
                args=list(args),
                returncode=proc.returncode,
                stderr=stderr,
            )
        return proc

    def output(self, args: Sequence[str], env: Optional[Dict[str, str]] = None) -> str:
        """Run a git subcommand and return its decoded stdout."""
        proc = self.run(args, env=env)
        return proc.stdout.decode("utf-8", errors="replace")

    def succeeds(self, args: Sequence[str]) -> bool:
        """Return True if the subcommand exits with status 0."""
        return self.run(args, check=False).returncode == 0

    def null_separated(self, args: Sequence[str], env: Optional[Dict[str, str]] = None) -> List[str]:
        """Run a ``-z`` style subcommand and split its output on NUL."""
        return [item for item in self.output(args, env=env).split("\0") if item]
