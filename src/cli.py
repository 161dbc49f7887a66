#!/usr/bin/env python3
"""
CLI for continuous local version history.

Usage:
    python -m src.cli add-folder ~/Documents/notes
    python -m src.cli serve --port 8765
    python -m src.cli log <folder> --limit 20
    python -m src.cli restore <folder> notes/todo.md 1a2b3c4
"""

import argparse
import difflib
import logging
import signal
import sys
import time
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from src.api import APIConfig, APIService, EventLog
from src.folders import (
    FolderError,
    FolderRegistry,
    VersioningService,
    WatchedFolder,
    default_config_home,
    default_config_path,
)
from src.history import CURRENT_REF, DELETED_REF, HistoryStoreError, NotFoundError
from src.watcher import CommitStrategy


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "local-versioning.log"

logger = logging.getLogger("cli")


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self):
        self.should_exit = False
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.should_exit = True


def _build_service(args, events: Optional[EventLog] = None) -> VersioningService:
    config_path = Path(args.config).expanduser() if args.config else default_config_path()
    registry = FolderRegistry(config_path)
    if events is None:
        return VersioningService(registry)
    return VersioningService(
        registry,
        on_commit=events.record_commit,
        on_error=events.record_error,
    )


def _resolve_folder(service: VersioningService, key: str) -> WatchedFolder:
    """Find a folder by id, path or name."""
    folders = service.folders()
    for folder in folders:
        if folder.id == key:
            return folder
    candidate = Path(key).expanduser()
    if candidate.exists():
        resolved = candidate.resolve()
        for folder in folders:
            if folder.path.resolve() == resolved:
                return folder
    matches = [f for f in folders if f.name == key]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        logger.error(f"Folder name '{key}' is ambiguous, use the id instead")
        sys.exit(1)
    logger.error(f"Folder not found: {key}")
    sys.exit(1)


def cmd_serve(args):
    """Watch every active folder and serve the HTTP API."""
    home = default_config_home()
    home.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(home / LOG_FILE_NAME, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    logging.getLogger().addHandler(file_handler)

    events = EventLog()
    service = _build_service(args, events)

    shutdown = GracefulShutdown()

    results = service.start_all()
    watching = sum(1 for ok in results.values() if ok)
    logger.info(f"Watching {watching} of {len(results)} active folder(s)")
    for folder in service.folders():
        state = "watching" if service.is_watching(folder.id) else "stopped"
        logger.info(f"  - {folder.name} ({folder.path}) [{state}]")

    api = None
    if not args.no_api:
        api = APIService(APIConfig(host=args.host, port=args.port), service, events)
        api.start()
    logger.info("Press Ctrl+C to stop")

    try:
        while not shutdown.should_exit:
            time.sleep(0.5)
    finally:
        if api:
            api.stop()
        service.stop_all()
    logger.info("Stopped")


def cmd_add_folder(args):
    """Register a folder for version history."""
    service = _build_service(args)
    options = {
        "commit_strategy": args.strategy,
        "periodic_interval": args.interval,
        "watch_subfolders": not args.no_subfolders,
        "custom_store_path": Path(args.store).expanduser().resolve() if args.store else None,
    }
    if args.ignore:
        options["ignore_patterns"] = args.ignore
    if args.name:
        options["name"] = args.name

    try:
        folder = service.add_folder(Path(args.path).resolve(), start=False, **options)
        service.get_store(folder.id).initialize()
    except (FolderError, HistoryStoreError, ValueError) as e:
        logger.error(f"Failed to add folder: {e}")
        sys.exit(1)

    print(f"Added {folder.name} ({folder.id})")
    print(f"  History store: {folder.storage_location}")


def cmd_remove_folder(args):
    """Stop versioning a folder. Its history stays on disk."""
    service = _build_service(args)
    folder = _resolve_folder(service, args.folder)
    service.remove_folder(folder.id)
    print(f"Removed {folder.name} ({folder.id})")
    print(f"  History kept at: {folder.storage_location}")


def cmd_list_folders(args):
    """List watched folders."""
    service = _build_service(args)
    folders = service.folders()

    print(f"\nWatched folders ({len(folders)}):")
    if not folders:
        print("  (none)")
    for folder in folders:
        strategy = folder.commit_strategy.value
        if folder.commit_strategy == CommitStrategy.PERIODIC:
            strategy += f" every {folder.periodic_interval} min"
        status = "active" if folder.is_active else "inactive"
        print(f"  - {folder.name} [{status}, {strategy}]")
        print(f"      id:    {folder.id}")
        print(f"      path:  {folder.path}")
        print(f"      store: {folder.storage_location}")


def cmd_log(args):
    """Show recent commits for a folder."""
    service = _build_service(args)
    folder = _resolve_folder(service, args.folder)
    try:
        commits = service.list_commits(folder.id, args.limit)
    except HistoryStoreError as e:
        logger.error(f"Failed to read history: {e}")
        sys.exit(1)

    if not commits:
        print("No commits yet")
        return
    for commit in commits:
        print(f"{commit.short_hash}  {commit.timestamp.astimezone():%Y-%m-%d %H:%M:%S}  {commit.message}")
        if args.files:
            for path in commit.changed_paths:
                print(f"           {path}")


def cmd_show(args):
    """Print a file as it was at a commit."""
    service = _build_service(args)
    folder = _resolve_folder(service, args.folder)
    try:
        content = service.read_file_at(folder.id, args.ref, args.path)
    except NotFoundError as e:
        logger.error(str(e))
        sys.exit(1)
    except HistoryStoreError as e:
        logger.error(f"Failed to read file: {e}")
        sys.exit(1)
    sys.stdout.write(content)


def _ref_label(ref: str) -> str:
    return ref if ref in (CURRENT_REF, DELETED_REF) else ref[:7]


def cmd_diff(args):
    """Show a unified diff between a commit and another commit or the live file."""
    service = _build_service(args)
    folder = _resolve_folder(service, args.folder)
    try:
        result = service.diff(folder.id, args.path, args.old_ref, args.new_ref)
    except HistoryStoreError as e:
        logger.error(str(e))
        sys.exit(1)

    lines = difflib.unified_diff(
        result.old_content.splitlines(keepends=True),
        result.new_content.splitlines(keepends=True),
        fromfile=f"{result.file_name}@{_ref_label(result.old_ref)}",
        tofile=f"{result.file_name}@{_ref_label(result.new_ref)}",
    )
    sys.stdout.writelines(lines)


def cmd_restore(args):
    """Restore a file from a commit; the restore is recorded as a new commit."""
    service = _build_service(args)
    folder = _resolve_folder(service, args.folder)
    try:
        commit_hash = service.restore(folder.id, args.path, args.ref)
    except HistoryStoreError as e:
        logger.error(f"Failed to restore {args.path}: {e}")
        sys.exit(1)
    print(f"Restored {args.path} from {args.ref[:7]} (commit {commit_hash[:7]})")


def cmd_relocate(args):
    """Move a folder's history store."""
    service = _build_service(args)
    folder = _resolve_folder(service, args.folder)
    try:
        result = service.relocate(folder.id, Path(args.new_location))
    except (FolderError, HistoryStoreError) as e:
        logger.error(f"Relocation failed: {e}")
        sys.exit(1)

    print(f"{result.action.value}: {result.old_location} -> {result.new_location}")
    if result.backup_location:
        print(f"  Backup: {result.backup_location}")


def cmd_detect(args):
    """Look for an existing history store for a folder."""
    service = _build_service(args)
    path = Path(args.path).expanduser().resolve()
    detected = service.detect_existing_store(path, args.name)
    if detected is None:
        print(f"No existing history store found for {path}")
        return
    print(f"Found history store at {detected.path} ({detected.commit_count} commit(s))")


def main():
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Continuous local version history for folders",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Version a folder, keeping history in a custom location
  python -m src.cli add-folder ./notes --store ~/LocalVersioning/notes-git

  # Watch all active folders and serve the API
  python -m src.cli serve

  # Inspect and restore
  python -m src.cli log notes --files
  python -m src.cli diff notes todo.md 1a2b3c4
  python -m src.cli restore notes todo.md 1a2b3c4
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--config", help="Config file (default: ~/.local-versioning/config.json)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Watch active folders and serve the API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="API host (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=8765, help="API port (default: 8765)")
    serve_parser.add_argument("--no-api", action="store_true", help="Watch folders without the HTTP API")
    serve_parser.set_defaults(func=cmd_serve)

    add_parser = subparsers.add_parser("add-folder", help="Register a folder for version history")
    add_parser.add_argument("path", help="Folder to version")
    add_parser.add_argument("--name", help="Display name (default: folder name)")
    add_parser.add_argument("--strategy", default="on-save", choices=["on-save", "periodic"],
                            help="Commit after each save or on a fixed interval")
    add_parser.add_argument("--interval", type=int, default=5, help="Minutes between periodic commits")
    add_parser.add_argument("--ignore", nargs="+", help="Glob patterns to ignore (replaces the defaults)")
    add_parser.add_argument("--no-subfolders", action="store_true", help="Only watch direct children")
    add_parser.add_argument("--store", help="Keep the history store here instead of <folder>/.git")
    add_parser.set_defaults(func=cmd_add_folder)

    remove_parser = subparsers.add_parser("remove-folder", help="Stop versioning a folder")
    remove_parser.add_argument("folder", help="Folder id, path or name")
    remove_parser.set_defaults(func=cmd_remove_folder)

    list_parser = subparsers.add_parser("list-folders", help="List watched folders")
    list_parser.set_defaults(func=cmd_list_folders)

    log_parser = subparsers.add_parser("log", help="Show commit history")
    log_parser.add_argument("folder", help="Folder id, path or name")
    log_parser.add_argument("--limit", type=int, default=50, help="Number of commits (default: 50)")
    log_parser.add_argument("--files", action="store_true", help="List changed files")
    log_parser.set_defaults(func=cmd_log)

    show_parser = subparsers.add_parser("show", help="Print a file as of a commit")
    show_parser.add_argument("folder", help="Folder id, path or name")
    show_parser.add_argument("ref", help="Commit hash")
    show_parser.add_argument("path", help="File path relative to the folder")
    show_parser.set_defaults(func=cmd_show)

    diff_parser = subparsers.add_parser("diff", help="Diff a file against a commit")
    diff_parser.add_argument("folder", help="Folder id, path or name")
    diff_parser.add_argument("path", help="File path relative to the folder")
    diff_parser.add_argument("old_ref", help="Commit for the old side")
    diff_parser.add_argument("new_ref", nargs="?", help="Commit for the new side (default: live file)")
    diff_parser.set_defaults(func=cmd_diff)

    restore_parser = subparsers.add_parser("restore", help="Restore a file from a commit")
    restore_parser.add_argument("folder", help="Folder id, path or name")
    restore_parser.add_argument("path", help="File path relative to the folder")
    restore_parser.add_argument("ref", help="Commit hash")
    restore_parser.set_defaults(func=cmd_restore)

    relocate_parser = subparsers.add_parser("relocate", help="Move a folder's history store")
    relocate_parser.add_argument("folder", help="Folder id, path or name")
    relocate_parser.add_argument("new_location", help="New history store directory")
    relocate_parser.set_defaults(func=cmd_relocate)

    detect_parser = subparsers.add_parser("detect", help="Find an existing history store for a folder")
    detect_parser.add_argument("path", help="Folder path")
    detect_parser.add_argument("--name", help="Folder name used in custom store directories")
    detect_parser.set_defaults(func=cmd_detect)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )

    args.func(args)


if __name__ == "__main__":
    main()
