"""Tests for watched folder models."""

from pathlib import Path

import pytest

from src.folders.models import AppConfig, StoreLocationMode, WatchedFolder
from src.watcher.exceptions import InvalidWatcherConfigError
from src.watcher.models import CommitStrategy


class TestWatchedFolder:
    """Tests for WatchedFolder dataclass."""

    def test_defaults(self):
        folder = WatchedFolder(path="/data/notes")

        assert folder.name == "notes"
        assert folder.id
        assert folder.commit_strategy == CommitStrategy.ON_SAVE
        assert folder.periodic_interval == 5
        assert folder.watch_subfolders is True
        assert folder.is_active is True
        assert folder.custom_store_path is None
        assert folder.storage_location == Path("/data/notes/.git")

    def test_ids_are_unique(self):
        assert WatchedFolder(path="/a").id != WatchedFolder(path="/a").id

    def test_custom_store_path(self):
        folder = WatchedFolder(path="/data/notes", custom_store_path="/stores/notes-git")

        assert folder.storage_location == Path("/stores/notes-git")
        assert folder.default_store_location == Path("/data/notes/.git")

    def test_empty_custom_store_path_is_none(self):
        assert WatchedFolder(path="/a", custom_store_path="").custom_store_path is None

    def test_watcher_config(self):
        folder = WatchedFolder(
            path="/a",
            commit_strategy="periodic",
            periodic_interval=15,
            ignore_patterns=["*.bak"],
            watch_subfolders=False,
        )

        config = folder.watcher_config()

        assert config.commit_strategy == CommitStrategy.PERIODIC
        assert config.periodic_interval_seconds == 900.0
        assert config.ignore_patterns == ["*.bak"]
        assert config.recursive is False

    def test_watcher_config_validates(self):
        folder = WatchedFolder(path="/a", periodic_interval=0)

        with pytest.raises(InvalidWatcherConfigError):
            folder.watcher_config()

    def test_to_dict_and_back(self):
        folder = WatchedFolder(
            path="/data/notes",
            name="Notes",
            commit_strategy=CommitStrategy.PERIODIC,
            periodic_interval=10,
            custom_store_path="/stores/notes-git",
            is_active=False,
        )

        data = folder.to_dict()
        assert data["commit_strategy"] == "periodic"
        assert data["storage_location"] == "/stores/notes-git"

        restored = WatchedFolder.from_dict(data)
        assert restored == folder

    def test_from_dict_legacy_keys(self):
        folder = WatchedFolder.from_dict({
            "id": "abc",
            "path": "/data/notes",
            "name": "notes",
            "commitStrategy": "periodic",
            "periodicInterval": 30,
            "ignorePatterns": ["*.tmp"],
            "isActive": False,
            "customGitPath": "/stores/notes-git",
        })

        assert folder.id == "abc"
        assert folder.commit_strategy == CommitStrategy.PERIODIC
        assert folder.periodic_interval == 30
        assert folder.ignore_patterns == ["*.tmp"]
        assert folder.is_active is False
        assert folder.custom_store_path == Path("/stores/notes-git")
        assert folder.watch_subfolders is True


class TestAppConfig:
    """Tests for AppConfig dataclass."""

    def test_defaults(self):
        config = AppConfig()

        assert config.watched_folders == []
        assert config.default_store_location == StoreLocationMode.WATCHED_FOLDER
        assert config.default_custom_store_root is None

    def test_round_trip(self):
        config = AppConfig(
            watched_folders=[WatchedFolder(path="/a")],
            default_store_location="custom",
            default_custom_store_root="/stores",
        )

        restored = AppConfig.from_dict(config.to_dict())

        assert restored.default_store_location == StoreLocationMode.CUSTOM
        assert restored.default_custom_store_root == Path("/stores")
        assert [f.id for f in restored.watched_folders] == [config.watched_folders[0].id]

    def test_legacy_keys(self):
        config = AppConfig.from_dict({
            "watchedFolders": [{"path": "/a"}],
            "defaultGitLocation": "custom",
            "defaultCustomGitPath": "/stores",
        })

        assert len(config.watched_folders) == 1
        assert config.default_store_location == StoreLocationMode.CUSTOM
        assert config.default_custom_store_root == Path("/stores")
