"""Tests for history store locations and detection."""

from datetime import datetime, timezone
from pathlib import Path

from conftest import requires_git
from src.folders.locations import (
    backup_path,
    candidate_locations,
    custom_store_location,
    detect_existing_store,
    is_valid_store,
)
from src.history.store import HistoryStore


MOMENT = datetime(2024, 6, 1, 9, 30, 15, tzinfo=timezone.utc)


class TestLocations:
    """Tests for location helpers."""

    def test_custom_store_location(self):
        assert custom_store_location(Path("/stores"), "notes") == Path("/stores/notes-git")

    def test_candidate_order(self, tmp_path):
        candidates = candidate_locations(tmp_path / "notes", "notes", tmp_path / "custom", home=tmp_path / "home")

        assert candidates[0] == tmp_path / "notes" / ".git"
        assert candidates[1] == tmp_path / "custom" / "notes-git"
        assert candidates[2] == tmp_path / "home" / "LocalVersioning" / "notes-git"
        assert len(candidates) == 5

    def test_is_valid_store(self, tmp_path):
        store = tmp_path / "store"
        assert is_valid_store(store) is False

        store.mkdir()
        (store / "HEAD").write_text("ref: refs/heads/main\n")
        (store / "objects").mkdir()
        assert is_valid_store(store) is False

        (store / "refs").mkdir()
        assert is_valid_store(store) is True


class TestBackupPath:
    """Tests for backup_path function."""

    def test_timestamped_name(self, tmp_path):
        assert backup_path(tmp_path / "store", MOMENT) == tmp_path / "store-backup-2024-06-01T09-30-15"

    def test_collision_gets_suffix(self, tmp_path):
        (tmp_path / "store-backup-2024-06-01T09-30-15").mkdir()
        assert backup_path(tmp_path / "store", MOMENT) == tmp_path / "store-backup-2024-06-01T09-30-15-1"

        (tmp_path / "store-backup-2024-06-01T09-30-15-1").mkdir()
        assert backup_path(tmp_path / "store", MOMENT) == tmp_path / "store-backup-2024-06-01T09-30-15-2"


@requires_git
class TestDetectExistingStore:
    """Tests for detect_existing_store function."""

    def test_nothing_found(self, tmp_path, folder):
        assert detect_existing_store(folder, home=tmp_path / "home") is None

    def test_default_location(self, tmp_path, folder, store):
        (folder / "a.txt").write_text("hello")
        store.initialize()

        detected = detect_existing_store(folder, home=tmp_path / "home")

        assert detected.path == folder / ".git"
        assert detected.commit_count == 1
        assert detected.to_dict() == {"found": True, "path": str(folder / ".git"), "commit_count": 1}

    def test_configured_custom_root(self, tmp_path, folder, clock):
        location = tmp_path / "custom" / "work-git"
        (folder / "a.txt").write_text("hello")
        HistoryStore(folder, location, clock=clock).initialize()

        detected = detect_existing_store(folder, custom_root=tmp_path / "custom", home=tmp_path / "home")

        assert detected.path == location
        assert detected.commit_count == 1

    def test_common_root_under_home(self, tmp_path, folder, clock):
        location = tmp_path / "home" / "LocalVersioning" / "Notes-git"
        (folder / "a.txt").write_text("hello")
        HistoryStore(folder, location, clock=clock).initialize()

        detected = detect_existing_store(folder, "Notes", home=tmp_path / "home")

        assert detected.path == location

    def test_empty_store_counts_zero(self, tmp_path, folder, store):
        store.initialize()

        detected = detect_existing_store(folder, home=tmp_path / "home")

        assert detected.commit_count == 0
