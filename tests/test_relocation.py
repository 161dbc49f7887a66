"""Tests for history store relocation."""

from datetime import datetime, timezone

import pytest

from conftest import FakeObserver, SteppingClock, requires_git
from src.folders.exceptions import RelocationConflictError, SourceMissingError
from src.folders.relocation import RelocationAction
from src.folders.service import VersioningService
from src.history.exceptions import StoreIOError
from src.history.store import HistoryStore
from src.watcher.timers import ManualTimers


pytestmark = requires_git

EARLY = datetime(2023, 1, 1, tzinfo=timezone.utc)
LATE = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def service(fake_observers):
    return VersioningService(
        clock=SteppingClock(start=LATE),
        timers=ManualTimers(),
        observer_factory=fake_observers,
    )


@pytest.fixture
def watched(service, folder):
    """A registered folder with an initialized store at the default location."""
    (folder / "a.txt").write_text("hello")
    added = service.add_folder(folder, start=False)
    service.get_store(added.id).initialize()
    return added


def _make_store(folder, location, start, files=1):
    store = HistoryStore(folder, location, clock=SteppingClock(start=start))
    store.initialize()
    for i in range(files):
        (folder / f"extra{i}.txt").write_text(str(i))
        store.commit([f"extra{i}.txt"])
    return store


class TestRelocate:
    """Tests for RelocationCoordinator.relocate."""

    def test_same_location_is_unchanged(self, service, watched, folder):
        result = service.relocate(watched.id, folder / ".git")

        assert result.action == RelocationAction.UNCHANGED
        assert (folder / ".git").is_dir()
        assert service.get_folder(watched.id).custom_store_path is None

    def test_move_to_free_location(self, tmp_path, service, watched, folder):
        target = tmp_path / "stores" / "work-git"
        before = service.list_commits(watched.id)

        result = service.relocate(watched.id, target)

        assert result.action == RelocationAction.MOVED
        assert result.backup_location is None
        assert not (folder / ".git").exists()
        assert target.is_dir()
        assert service.get_folder(watched.id).custom_store_path == target
        assert [c.hash for c in service.list_commits(watched.id)] == [c.hash for c in before]

    def test_idempotent(self, tmp_path, service, watched):
        target = tmp_path / "stores" / "work-git"
        service.relocate(watched.id, target)

        result = service.relocate(watched.id, target)

        assert result.action == RelocationAction.UNCHANGED
        assert len(service.list_commits(watched.id)) == 1

    def test_move_back_to_default_clears_custom_path(self, tmp_path, service, watched, folder):
        service.relocate(watched.id, tmp_path / "stores" / "work-git")

        result = service.relocate(watched.id, folder / ".git")

        assert result.action == RelocationAction.MOVED
        assert service.get_folder(watched.id).custom_store_path is None
        assert len(service.list_commits(watched.id)) == 1

    def test_newer_source_replaces_destination(self, tmp_path, service, watched, folder):
        target = tmp_path / "stores" / "work-git"
        _make_store(folder, target, EARLY, files=3)
        source_count = service.get_store(watched.id).commit_count()

        result = service.relocate(watched.id, target)

        assert result.action == RelocationAction.REPLACED_DESTINATION
        assert result.backup_location.name.startswith("work-git-backup-")
        assert HistoryStore(folder, result.backup_location).commit_count() == 4
        assert service.get_store(watched.id).commit_count() == source_count
        assert not (folder / ".git").exists()

    def test_newer_destination_is_kept(self, tmp_path, folder, fake_observers):
        service = VersioningService(
            clock=SteppingClock(start=EARLY),
            timers=ManualTimers(),
            observer_factory=fake_observers,
        )
        (folder / "a.txt").write_text("hello")
        watched = service.add_folder(folder, start=False)
        service.get_store(watched.id).initialize()
        target = tmp_path / "stores" / "work-git"
        _make_store(folder, target, LATE, files=2)

        result = service.relocate(watched.id, target)

        assert result.action == RelocationAction.KEPT_DESTINATION
        assert result.backup_location.name.startswith(".git-backup-")
        assert HistoryStore(folder, result.backup_location).commit_count() == 1
        assert service.get_store(watched.id).commit_count() == 3
        assert service.get_folder(watched.id).custom_store_path == target

    def test_empty_destination_is_replaced(self, tmp_path, service, watched, folder):
        target = tmp_path / "stores" / "work-git"
        empty = tmp_path / "empty"
        empty.mkdir()
        HistoryStore(empty, target).initialize()

        result = service.relocate(watched.id, target)

        assert result.action == RelocationAction.REPLACED_DESTINATION
        assert service.get_store(watched.id).commit_count() == 1

    def test_config_only_when_source_missing(self, tmp_path, service, folder):
        target = tmp_path / "stores" / "work-git"
        (folder / "a.txt").write_text("hello")
        _make_store(folder, target, EARLY, files=0)
        watched = service.add_folder(folder, start=False)

        result = service.relocate(watched.id, target)

        assert result.action == RelocationAction.CONFIG_ONLY
        assert service.get_folder(watched.id).custom_store_path == target
        assert service.get_store(watched.id).commit_count() == 1

    def test_source_and_destination_missing(self, tmp_path, service, folder):
        watched = service.add_folder(folder, start=False)

        with pytest.raises(SourceMissingError):
            service.relocate(watched.id, tmp_path / "nowhere")
        assert service.get_folder(watched.id).custom_store_path is None

    def test_watching_scheduler_is_resumed(self, tmp_path, service, folder):
        (folder / "a.txt").write_text("hello")
        watched = service.add_folder(folder)
        assert service.is_watching(watched.id)

        service.relocate(watched.id, tmp_path / "stores" / "work-git")

        assert service.is_watching(watched.id)
        assert FakeObserver.instances[0].stopped
        assert FakeObserver.instances[-1].started
        assert service.get_store(watched.id).storage_location == tmp_path / "stores" / "work-git"

    def test_stopped_scheduler_stays_stopped(self, tmp_path, service, watched):
        service.relocate(watched.id, tmp_path / "stores" / "work-git")

        assert not service.is_watching(watched.id)

    def test_unreadable_destination_keeps_configuration(self, tmp_path, service, folder, monkeypatch):
        (folder / "a.txt").write_text("hello")
        watched = service.add_folder(folder)
        target = tmp_path / "stores" / "work-git"

        def unreadable(self, limit=50):
            raise StoreIOError("Failed to get commits: corrupt object")

        monkeypatch.setattr(HistoryStore, "get_commits", unreadable)

        with pytest.raises(RelocationConflictError):
            service.relocate(watched.id, target)

        assert service.get_folder(watched.id).custom_store_path == target
        assert service.is_watching(watched.id)
        assert service.get_store(watched.id).storage_location == target
        assert target.is_dir()
