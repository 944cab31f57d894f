"""Tests for the JSON version store and backup rotation."""

import json
from datetime import datetime, timezone

import pytest

from switchdex.db.json_store import JsonFileStore
from switchdex.db.version_store import VersionStore
from switchdex.errors import PersistenceError
from switchdex.models import Category, TrackedEntity, VersionRecord


def entity(entity_id="atmosphere", category=Category.FIRMWARE):
    return TrackedEntity(id=entity_id, category=category, name=entity_id)


def test_read_missing_returns_default(data_dir):
    store = VersionStore(data_dir)
    record = store.read(entity("never-seen"))
    assert record == VersionRecord()
    assert not (data_dir / "core-versions.json").exists()


def test_read_empty_or_corrupt_file_returns_default(data_dir):
    data_dir.mkdir(parents=True)
    (data_dir / "core-versions.json").write_text("")
    (data_dir / "homebrew-versions.json").write_text("{not json")

    store = VersionStore(data_dir)
    assert store.read(entity()).version is None
    assert store.read(entity("ftpd", Category.APPLICATION)).version is None


def test_write_then_read(data_dir):
    store = VersionStore(data_dir)
    store.write(entity(), VersionRecord(version="1.7.0", url="https://example/atmosphere"))

    reloaded = VersionStore(data_dir)
    record = reloaded.read(entity())
    assert record.version == "1.7.0"
    assert record.url == "https://example/atmosphere"

    on_disk = json.loads((data_dir / "core-versions.json").read_text())
    assert on_disk["atmosphere"]["version"] == "1.7.0"


def test_writes_keep_at_most_five_backups(data_dir):
    store = VersionStore(data_dir)
    for i in range(12):
        store.write(entity(), VersionRecord(version=f"1.{i}.0"))

    backups = store.file_for(Category.FIRMWARE).list_backups()
    assert len(backups) == 5
    newest = json.loads(backups[-1].read_text())
    assert newest["atmosphere"]["version"] == "1.10.0"


def test_backups_are_per_logical_file(data_dir):
    store = VersionStore(data_dir)
    for i in range(7):
        store.write(entity(), VersionRecord(version=f"1.{i}.0"))
        store.write(entity("ftpd", Category.APPLICATION), VersionRecord(version=f"3.{i}.0"))

    assert len(store.file_for(Category.FIRMWARE).list_backups()) == 5
    assert len(store.file_for(Category.APPLICATION).list_backups()) == 5


def test_write_failure_surfaces_and_keeps_previous_value(data_dir, monkeypatch):
    store = VersionStore(data_dir)
    store.write(entity(), VersionRecord(version="1.0.0"))

    def broken_save(self, data):
        raise PersistenceError("disk full")

    monkeypatch.setattr(JsonFileStore, "save", broken_save)

    with pytest.raises(PersistenceError):
        store.write(entity(), VersionRecord(version="2.0.0"))
    assert store.read(entity()).version == "1.0.0"


def test_unwritable_path_raises_persistence_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory")
    file_store = JsonFileStore(blocker / "core-versions.json")

    with pytest.raises(PersistenceError):
        file_store.save({"x": 1})


def test_mark_checked_persists_on_flush(data_dir):
    store = VersionStore(data_dir)
    when = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
    store.mark_checked(entity(), when)
    assert not (data_dir / "core-versions.json").exists()

    store.flush(Category.FIRMWARE)

    reloaded = VersionStore(data_dir)
    assert reloaded.read(entity()).last_checked == when


def test_naive_last_checked_is_read_as_utc(data_dir):
    data_dir.mkdir(parents=True)
    (data_dir / "core-versions.json").write_text(
        json.dumps({"atmosphere": {"version": "1.7.1", "last_checked": "2024-06-01T12:00:00"}})
    )

    record = VersionStore(data_dir).read(entity())

    assert record.last_checked == datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
