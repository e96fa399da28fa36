"""
Tests for the record stores and the in-memory collection index.
"""
import json
import threading
from unittest.mock import MagicMock, patch

import pytest

from autopilot.errors import PersistenceFailure
from autopilot.storage import Collection, JsonFileStore, SupabaseStore


# ─── JsonFileStore ─────────────────────────────────────────


class TestJsonFileStore:
    """Atomic flat-file persistence."""

    def test_missing_collection_loads_empty(self, tmp_path):
        store = JsonFileStore(tmp_path)
        assert store.load("recommendations") == {}

    def test_persist_then_load(self, tmp_path):
        store = JsonFileStore(tmp_path / "nested")
        store.persist("outcomes", {"a": {"value": 1}}, ["a"])

        assert store.load("outcomes") == {"a": {"value": 1}}
        assert (tmp_path / "nested" / "outcomes.json").exists()

    def test_no_temp_files_left_behind(self, tmp_path):
        store = JsonFileStore(tmp_path)
        store.persist("patterns", {"p": {"x": 1}}, ["p"])
        leftovers = [p.name for p in tmp_path.iterdir() if p.name.endswith(".tmp")]
        assert leftovers == []

    def test_failed_write_keeps_previous_file(self, tmp_path):
        store = JsonFileStore(tmp_path)
        store.persist("patterns", {"p": {"x": 1}}, ["p"])

        with patch("autopilot.storage.json_store.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(PersistenceFailure):
                store.persist("patterns", {"p": {"x": 2}}, ["p"])

        assert json.loads((tmp_path / "patterns.json").read_text())["p"]["x"] == 1
        assert not any(p.name.endswith(".tmp") for p in tmp_path.iterdir())

    def test_corrupt_file_raises(self, tmp_path):
        (tmp_path / "experiments.json").write_text("{not json")
        with pytest.raises(PersistenceFailure):
            JsonFileStore(tmp_path).load("experiments")

    def test_non_object_file_raises(self, tmp_path):
        (tmp_path / "experiments.json").write_text("[1, 2]")
        with pytest.raises(PersistenceFailure):
            JsonFileStore(tmp_path).load("experiments")


# ─── SupabaseStore ─────────────────────────────────────────


class TestSupabaseStore:
    """Table-per-collection store with a mocked client."""

    def test_load_maps_rows_by_id(self):
        client = MagicMock()
        client.table.return_value.select.return_value.execute.return_value.data = [
            {"id": "a", "data": {"v": 1}},
        ]
        store = SupabaseStore(client=client)

        assert store.load("outcomes") == {"a": {"v": 1}}
        client.table.assert_called_with("autopilot_outcomes")

    def test_load_error_is_persistence_failure(self):
        client = MagicMock()
        client.table.return_value.select.return_value.execute.side_effect = RuntimeError("boom")
        with pytest.raises(PersistenceFailure):
            SupabaseStore(client=client).load("outcomes")


# ─── Collection ────────────────────────────────────────────


class TestCollection:
    """In-memory index with atomic per-id updates."""

    def test_snapshot_is_a_copy(self, store):
        coll = Collection(store, "patterns")
        coll.put("p1", {"tags": ["a"]})

        snap = coll.snapshot()
        snap[0]["tags"].append("b")

        assert coll.get("p1") == {"tags": ["a"]}

    def test_index_unchanged_when_persist_fails(self):
        backing = MagicMock()
        backing.load.return_value = {"a": {"v": 1}}
        backing.persist.side_effect = PersistenceFailure("nope")
        coll = Collection(backing, "outcomes")

        with pytest.raises(PersistenceFailure):
            coll.put("b", {"v": 2})

        assert "b" not in coll
        assert coll.get("a") == {"v": 1}

    def test_update_receives_current_record(self, store):
        coll = Collection(store, "outcomes")
        coll.put("r1", {"count": 1})

        result = coll.update("r1", lambda cur: {"count": cur["count"] + 1})

        assert result == {"count": 2}
        assert coll.get("r1") == {"count": 2}

    def test_update_missing_record_gets_none(self, store):
        coll = Collection(store, "outcomes")
        seen = []
        coll.update("new", lambda cur: seen.append(cur) or {"count": 0})
        assert seen == [None]

    def test_concurrent_updates_are_not_lost(self, store):
        coll = Collection(store, "outcomes")
        coll.put("r1", {"count": 0})

        def bump():
            for _ in range(20):
                coll.update("r1", lambda cur: {"count": cur["count"] + 1})

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert coll.get("r1")["count"] == 80

    def test_reload_reads_store_again(self, store):
        coll = Collection(store, "outcomes")
        coll.put("a", {"v": 1})
        store.persist("outcomes", {"a": {"v": 1}, "b": {"v": 2}}, ["b"])

        assert "b" not in coll
        coll.reload()
        assert "b" in coll
        assert len(coll) == 2
