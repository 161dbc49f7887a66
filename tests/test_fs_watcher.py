"""Tests for filesystem watcher module."""

import pytest
import time
import threading
from pathlib import Path

from src.watcher.exceptions import ObserverError
from src.watcher.models import RawFSEvent
from src.watcher.fs_watcher import FolderObserver, FSEventHandler


def _collector():
    events = []
    lock = threading.Lock()

    def callback(event):
        with lock:
            events.append(event)

    def snapshot():
        with lock:
            return list(events)

    return callback, snapshot


class TestFolderObserver:
    """Tests for FolderObserver class."""

    def test_start_and_stop(self, tmp_path):
        callback, _ = _collector()
        observer = FolderObserver(tmp_path, callback)

        observer.start()
        assert observer.is_alive

        observer.stop()
        assert not observer.is_alive

    def test_start_twice_is_noop(self, tmp_path):
        callback, _ = _collector()
        observer = FolderObserver(tmp_path, callback)

        observer.start()
        observer.start()
        assert observer.is_alive

        observer.stop()

    def test_stop_without_start(self, tmp_path):
        callback, _ = _collector()
        FolderObserver(tmp_path, callback).stop()

    def test_missing_folder_raises(self, tmp_path):
        callback, _ = _collector()
        observer = FolderObserver(tmp_path / "missing", callback)

        with pytest.raises(ObserverError):
            observer.start()
        assert not observer.is_alive

    def test_detects_file_creation(self, tmp_path):
        callback, snapshot = _collector()
        observer = FolderObserver(tmp_path, callback)
        observer.start()

        # Give watcher time to start
        time.sleep(0.2)

        (tmp_path / "test.txt").write_text("hello")

        time.sleep(0.5)
        observer.stop()

        create_events = [e for e in snapshot() if e.event_type == "created" and "test.txt" in str(e.src_path)]
        assert len(create_events) >= 1

    def test_detects_file_modification(self, tmp_path):
        test_file = tmp_path / "test.txt"
        test_file.write_text("initial")

        callback, snapshot = _collector()
        observer = FolderObserver(tmp_path, callback)
        observer.start()

        time.sleep(0.2)

        test_file.write_text("modified")

        time.sleep(0.5)
        observer.stop()

        modify_events = [e for e in snapshot() if e.event_type == "modified" and "test.txt" in str(e.src_path)]
        assert len(modify_events) >= 1

    def test_detects_file_deletion(self, tmp_path):
        test_file = tmp_path / "test.txt"
        test_file.write_text("to be deleted")

        callback, snapshot = _collector()
        observer = FolderObserver(tmp_path, callback)
        observer.start()

        time.sleep(0.2)

        test_file.unlink()

        time.sleep(0.5)
        observer.stop()

        delete_events = [e for e in snapshot() if e.event_type == "deleted" and "test.txt" in str(e.src_path)]
        assert len(delete_events) >= 1

    def test_preexisting_files_not_announced(self, tmp_path):
        (tmp_path / "old.txt").write_text("already here")

        callback, snapshot = _collector()
        observer = FolderObserver(tmp_path, callback)
        observer.start()

        time.sleep(0.5)
        observer.stop()

        assert [e for e in snapshot() if "old.txt" in str(e.src_path)] == []

    def test_watches_subdirectories(self, tmp_path):
        subdir = tmp_path / "subdir"
        subdir.mkdir()

        callback, snapshot = _collector()
        observer = FolderObserver(tmp_path, callback, recursive=True)
        observer.start()

        time.sleep(0.2)

        (subdir / "nested.txt").write_text("nested content")

        time.sleep(0.5)
        observer.stop()

        nested_events = [e for e in snapshot() if "nested.txt" in str(e.src_path)]
        assert len(nested_events) >= 1


class _FakeWatchdogEvent:
    def __init__(self, src_path, dest_path=None):
        self.src_path = src_path
        self.dest_path = dest_path


class TestFSEventHandler:
    """Tests for FSEventHandler class."""

    def test_converts_events(self, tmp_path):
        events = []
        handler = FSEventHandler(events.append)

        handler.on_created(_FakeWatchdogEvent(str(tmp_path / "a.txt")))
        handler.on_modified(_FakeWatchdogEvent(str(tmp_path / "a.txt")))
        handler.on_deleted(_FakeWatchdogEvent(str(tmp_path / "a.txt")))
        handler.on_moved(_FakeWatchdogEvent(str(tmp_path / "a.txt"), str(tmp_path / "b.txt")))

        assert [e.event_type for e in events] == ["created", "modified", "deleted", "moved"]
        assert all(isinstance(e, RawFSEvent) for e in events)
        assert events[3].dest_path == Path(tmp_path / "b.txt")
        assert events[0].is_directory is False

    def test_callback_errors_go_to_on_error(self, tmp_path):
        errors = []

        def failing(event):
            raise RuntimeError("boom")

        handler = FSEventHandler(failing, on_error=errors.append)
        handler.on_created(_FakeWatchdogEvent(str(tmp_path / "a.txt")))

        assert len(errors) == 1
        assert str(errors[0]) == "boom"
