"""
Tests for the recent-file registries.

Run with: pytest tests/test_recents.py -v
"""

import json
from datetime import datetime

import pytest

from client.recents import (
    MAX_RECENT_FILES,
    STORAGE_KEYS,
    JsonKeyValueStore,
    RecentFileEntry,
    RecentFileRegistry,
    RecentKind,
)


@pytest.fixture
def storage(tmp_path):
    return JsonKeyValueStore(tmp_path / "state")


@pytest.fixture
def registry(storage):
    return RecentFileRegistry(storage)


def _entry(name, path=None):
    return RecentFileEntry(name=name, path=path if path is not None else f"/data/{name}")


class TestRecentFileRegistry:

    def test_empty_when_nothing_stored(self, registry):
        assert registry.list(RecentKind.DATASET) == []

    def test_record_prepends(self, registry):
        registry.record(RecentKind.DATASET, _entry("a.a2l"))
        registry.record(RecentKind.DATASET, _entry("b.a2l"))

        assert [e.name for e in registry.list(RecentKind.DATASET)] == ["b.a2l", "a.a2l"]

    def test_record_same_file_twice_keeps_one_entry_first(self, registry):
        registry.record(RecentKind.DATASET, _entry("a.a2l"))
        registry.record(RecentKind.DATASET, _entry("b.a2l"))
        registry.record(RecentKind.DATASET, _entry("a.a2l"))

        entries = registry.list(RecentKind.DATASET)
        assert [e.name for e in entries] == ["a.a2l", "b.a2l"]

    def test_same_name_other_location_is_distinct(self, registry):
        registry.record(RecentKind.DATASET, _entry("a.a2l", "/one/a.a2l"))
        registry.record(RecentKind.DATASET, _entry("a.a2l", "/two/a.a2l"))

        assert [e.path for e in registry.list(RecentKind.DATASET)] == ["/two/a.a2l", "/one/a.a2l"]

    def test_entries_without_location_are_dropped(self, registry, storage):
        registry.record(RecentKind.DATASET, RecentFileEntry(name="unsaved"))

        assert registry.list(RecentKind.DATASET) == []
        assert storage.get(STORAGE_KEYS[RecentKind.DATASET]) is None

    def test_bounded_to_max(self, registry):
        for i in range(MAX_RECENT_FILES + 3):
            registry.record(RecentKind.BINARY, _entry(f"fw{i}.elf"))

        entries = registry.list(RecentKind.BINARY)
        assert len(entries) == MAX_RECENT_FILES == 8
        assert entries[0].name == f"fw{MAX_RECENT_FILES + 2}.elf"
        assert entries[-1].name == "fw3.elf"

    def test_kinds_are_separate(self, registry):
        registry.record(RecentKind.DATASET, _entry("a.a2l"))
        registry.record(RecentKind.BINARY, _entry("fw.elf"))

        assert [e.name for e in registry.list(RecentKind.DATASET)] == ["a.a2l"]
        assert [e.name for e in registry.list(RecentKind.BINARY)] == ["fw.elf"]

    def test_persists_across_instances(self, storage):
        opened = datetime(2024, 5, 1, 12, 30)
        RecentFileRegistry(storage).record(
            RecentKind.DATASET, RecentFileEntry(name="a.a2l", path="/data/a.a2l", last_opened=opened)
        )

        (entry,) = RecentFileRegistry(storage).list(RecentKind.DATASET)
        assert entry.last_opened == opened
        assert (storage.directory / "caldb-dataset-recents.json").exists()

    def test_malformed_storage_reads_as_empty(self, registry, storage):
        storage.directory.mkdir(parents=True)
        (storage.directory / "caldb-dataset-recents.json").write_text("{not json", encoding="utf-8")
        (storage.directory / "caldb-binary-recents.json").write_text(json.dumps({"a": 1}), encoding="utf-8")

        assert registry.list(RecentKind.DATASET) == []
        assert registry.list(RecentKind.BINARY) == []

    def test_malformed_entries_are_skipped(self, registry, storage):
        storage.set(
            STORAGE_KEYS[RecentKind.DATASET],
            [{"name": "ok.a2l", "path": "/data/ok.a2l"}, {"path": 5}, "junk", {"name": "no-path"}],
        )

        assert [e.name for e in registry.list(RecentKind.DATASET)] == ["ok.a2l"]


class TestJsonKeyValueStore:

    def test_default_directory_follows_config(self, isolated_config):
        assert JsonKeyValueStore().directory == isolated_config

    def test_round_trip(self, storage):
        storage.set("key", {"value": [1, 2]})
        assert storage.get("key") == {"value": [1, 2]}
