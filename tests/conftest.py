"""Shared fixtures for the test suite."""

import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from src.history.store import HistoryStore


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")


class SteppingClock:
    """Deterministic clock that moves forward a fixed step on every call."""

    def __init__(self, start: datetime = None, step: timedelta = timedelta(seconds=1)):
        self.current = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


class FakeObserver:
    """Stands in for FolderObserver; tests push events through ``callback``."""

    instances = []

    def __init__(self, root, callback, recursive=True, on_error=None):
        self.root = Path(root)
        self.callback = callback
        self.recursive = recursive
        self.on_error = on_error
        self.started = False
        self.stopped = False
        FakeObserver.instances.append(self)

    def start(self):
        self.started = True

    def stop(self, timeout: float = 5.0):
        self.stopped = True


@pytest.fixture
def clock():
    return SteppingClock()


@pytest.fixture
def folder(tmp_path):
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def store(folder, clock):
    return HistoryStore(folder, clock=clock)


@pytest.fixture
def fake_observers():
    FakeObserver.instances = []
    yield FakeObserver
    FakeObserver.instances = []
