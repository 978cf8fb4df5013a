"""Tests for key-value stores."""

import shutil
import tempfile
from pathlib import Path

import pytest

from milesync.sync.store import MemoryKeyValueStore, SqliteKeyValueStore


class TestSqliteKeyValueStore:
    """Tests for SqliteKeyValueStore."""

    def setup_method(self):
        """Set up test fixtures."""
        # Use temp file for each test
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = Path(self.temp_dir) / "test_state.db"
        self.store = SqliteKeyValueStore(db_path=self.db_path)

    def teardown_method(self):
        """Clean up."""
        self.store.close()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_get_missing_key(self):
        """Test that a missing key returns the default."""
        assert self.store.get("nope") is None
        assert self.store.get("nope", []) == []

    def test_set_and_get_string(self):
        """Test storing a scalar."""
        self.store.set("lastSyncedWorkoutDate", "2026-02-18T10:00:00+00:00")

        assert self.store.get("lastSyncedWorkoutDate") == "2026-02-18T10:00:00+00:00"

    def test_set_and_get_string_array(self):
        """Test storing a string array."""
        self.store.set("uploadedWorkoutIds", ["a", "b", "c"])

        assert self.store.get("uploadedWorkoutIds") == ["a", "b", "c"]

    def test_set_overwrites(self):
        """Test that setting an existing key replaces it."""
        self.store.set("key", "old")
        self.store.set("key", "new")

        assert self.store.get("key") == "new"

    def test_delete_many(self):
        """Test deleting several keys at once."""
        self.store.set("a", 1)
        self.store.set("b", 2)
        self.store.set("c", 3)

        removed = self.store.delete("a", "b", "missing")

        assert removed == 2
        assert self.store.get("a") is None
        assert self.store.get("b") is None
        assert self.store.get("c") == 3

    def test_delete_nothing(self):
        """Test delete with no keys."""
        assert self.store.delete() == 0

    def test_values_survive_reopen(self):
        """Test durability across store instances."""
        self.store.set("uploadedWorkoutIds", ["x"])
        self.store.close()

        reopened = SqliteKeyValueStore(db_path=self.db_path)
        try:
            assert reopened.get("uploadedWorkoutIds") == ["x"]
        finally:
            reopened.close()

    def test_creates_parent_directory(self):
        """Test that a nested db path is created."""
        nested = Path(self.temp_dir) / "a" / "b" / "state.db"
        store = SqliteKeyValueStore(db_path=nested)
        store.set("k", "v")

        assert nested.exists()
        store.close()


class TestMemoryKeyValueStore:
    """Tests for MemoryKeyValueStore."""

    def test_round_trip_and_delete(self):
        """Test the same contract as the SQLite store."""
        store = MemoryKeyValueStore()
        store.set("ids", ["a"])

        assert store.get("ids") == ["a"]
        assert store.delete("ids", "other") == 1
        assert store.get("ids", "default") == "default"

    def test_returned_values_are_copies(self):
        """Test that callers can't mutate stored state in place."""
        store = MemoryKeyValueStore()
        store.set("ids", ["a"])

        store.get("ids").append("b")

        assert store.get("ids") == ["a"]

    def test_rejects_unserialisable_values(self):
        """Test that only JSON values are accepted."""
        store = MemoryKeyValueStore()

        with pytest.raises(TypeError):
            store.set("bad", object())
