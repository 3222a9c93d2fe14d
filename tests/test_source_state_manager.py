"""
Tests for content hashing, the hash store and change partitioning.
"""

import hashlib
import json

import pytest

from ai_index.index_exceptions import IndexCorruptError
from ai_index.services.source_state_manager import ChangeTracker, HashStore, content_hash


class TestContentHash:
    """Test the file hasher."""

    def test_sha256_hex(self):
        assert content_hash(b"hello") == hashlib.sha256(b"hello").hexdigest()
        assert len(content_hash(b"")) == 64

    def test_deterministic_and_sensitive(self):
        assert content_hash(b"abc") == content_hash(b"abc")
        assert content_hash(b"abc") != content_hash(b"abd")


class TestHashStore:
    """Test persisted path -> digest mapping."""

    def test_missing_file_loads_empty(self, tmp_path):
        store = HashStore(tmp_path / "file_hashes.json")
        assert store.load() == {}
        assert not store.exists()

    def test_save_and_load(self, tmp_path):
        store = HashStore(tmp_path / "state" / "file_hashes.json")
        store.save({"b.md": "2" * 64, "a.js": "1" * 64})

        assert store.load() == {"a.js": "1" * 64, "b.md": "2" * 64}
        # No temp file left behind
        assert [p.name for p in (tmp_path / "state").iterdir()] == ["file_hashes.json"]

    def test_save_replaces_wholesale(self, tmp_path):
        store = HashStore(tmp_path / "file_hashes.json")
        store.save({"a.js": "1" * 64, "b.md": "2" * 64})
        store.save({"a.js": "3" * 64})

        assert store.load() == {"a.js": "3" * 64}

    def test_written_as_indented_json_object(self, tmp_path):
        path = tmp_path / "file_hashes.json"
        HashStore(path).save({"a.js": "1" * 64})

        assert json.loads(path.read_text()) == {"a.js": "1" * 64}
        assert "\n  " in path.read_text()

    def test_corrupt_json_raises(self, tmp_path):
        path = tmp_path / "file_hashes.json"
        path.write_text("{not json")

        with pytest.raises(IndexCorruptError):
            HashStore(path).load()

    def test_wrong_shape_raises(self, tmp_path):
        path = tmp_path / "file_hashes.json"
        path.write_text(json.dumps(["a.js"]))

        with pytest.raises(IndexCorruptError):
            HashStore(path).load()


class TestChangeTracker:
    """Test partitioning of current files against the previous run."""

    def test_first_run_everything_added(self):
        changes = ChangeTracker.partition({}, {"a.js": "1", "b.md": "2"})

        assert changes.to_process == ["a.js", "b.md"]
        assert changes.added == ["a.js", "b.md"]
        assert changes.unchanged == []
        assert changes.deleted == []

    def test_partition_is_disjoint(self):
        previous = {"same.js": "1", "changed.js": "2", "gone.js": "3"}
        current = {"same.js": "1", "changed.js": "20", "new.js": "4"}

        changes = ChangeTracker.partition(previous, current)

        assert changes.unchanged == ["same.js"]
        assert changes.to_process == ["changed.js", "new.js"]
        assert changes.modified == ["changed.js"]
        assert changes.added == ["new.js"]
        assert changes.deleted == ["gone.js"]
        assert changes.has_changes
        assert changes.total_count == 3

    def test_no_changes(self):
        changes = ChangeTracker.partition({"a.js": "1"}, {"a.js": "1"})

        assert changes.unchanged == ["a.js"]
        assert not changes.has_changes

    def test_force_collapses_unchanged(self):
        changes = ChangeTracker.partition({"a.js": "1", "gone.js": "2"}, {"a.js": "1"}, force=True)

        assert changes.unchanged == []
        assert changes.to_process == ["a.js"]
        assert changes.added == []
        assert changes.modified == []
        # Deletion detection is unaffected by force
        assert changes.deleted == ["gone.js"]
