"""Tests for history store models and message helpers."""

from datetime import datetime, timezone, timedelta

from src.history.models import (
    CURRENT_REF,
    Commit,
    DiffResult,
    auto_commit_message,
    format_timestamp,
    initial_commit_message,
    restore_commit_message,
    to_git_path,
)


MOMENT = datetime(2024, 3, 5, 14, 7, 9, tzinfo=timezone.utc)


class TestCommit:
    """Tests for Commit dataclass."""

    def test_short_hash(self):
        commit = Commit(hash="a" * 40, message="m", timestamp=MOMENT, author="x")
        assert commit.short_hash == "aaaaaaa"

    def test_to_dict(self):
        commit = Commit(
            hash="abc123",
            message="Auto-commit",
            timestamp=MOMENT,
            author="Local Versioning",
            changed_paths=["a.txt", "dir/b.txt"],
        )
        data = commit.to_dict()
        assert data["hash"] == "abc123"
        assert data["timestamp"] == "2024-03-05T14:07:09+00:00"
        assert data["changed_paths"] == ["a.txt", "dir/b.txt"]

    def test_from_dict(self):
        commit = Commit.from_dict({
            "hash": "abc123",
            "message": "hello",
            "timestamp": "2024-03-05T14:07:09+00:00",
            "author": "me",
            "changed_paths": ["a.txt"],
        })
        assert commit.timestamp == MOMENT
        assert commit.changed_paths == ["a.txt"]


class TestDiffResult:
    """Tests for DiffResult dataclass."""

    def test_defaults_to_current(self):
        result = DiffResult(file_name="a.txt", old_content="x", new_content="y", old_ref="abc")
        assert result.new_ref == CURRENT_REF
        assert result.to_dict()["new_ref"] == "current"


class TestToGitPath:
    """Tests for to_git_path function."""

    def test_strips_leading_dot_slash(self):
        assert to_git_path("./a/b.txt") == "a/b.txt"

    def test_converts_backslashes(self):
        assert to_git_path("dir\\sub\\file.txt") == "dir/sub/file.txt"

    def test_strips_slashes(self):
        assert to_git_path("/dir/") == "dir"


class TestMessages:
    """Tests for commit message builders."""

    def test_format_timestamp_converts_to_utc(self):
        local = MOMENT.astimezone(timezone(timedelta(hours=2)))
        assert format_timestamp(local) == "2024-03-05 14:07:09"

    def test_auto_commit_message_uses_base_names(self):
        message = auto_commit_message(["docs/b.txt", "a.txt", "other/a.txt"], MOMENT)
        assert message == "Auto-commit: 2024-03-05 14:07:09 - [a.txt, b.txt]"

    def test_initial_commit_message(self):
        assert initial_commit_message(MOMENT) == "Initial commit: 2024-03-05 14:07:09"

    def test_restore_commit_message(self):
        message = restore_commit_message("notes/todo.md", "0123456789abcdef", MOMENT)
        assert message == "Restored todo.md from 0123456 at 2024-03-05 14:07:09"
