"""Tests for the built-in catalog and tenant repositories."""

import json

import pytest

from switchdex.db.catalog import Catalog, load_builtin_catalog, repository_entity_id
from switchdex.errors import DuplicateEntityError, OwnershipError, UnknownEntityError
from switchdex.models import Category, TrackedEntity


def test_bundled_catalog_loads_global_entities():
    entities = load_builtin_catalog()
    ids = {e.id for e in entities}

    assert {"atmosphere", "hekate", "system-firmware"} <= ids
    assert all(e.is_global for e in entities)
    assert {e.category for e in entities} == {Category.GAME, Category.APPLICATION, Category.FIRMWARE}


def test_catalog_file_skips_malformed_entries(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps([
        {"id": "ok", "category": "game", "name": "OK", "sources": {"titledb": "ok"}, "owner_tenant": "x"},
        {"id": "bad", "category": "movies"},
        {"name": "no id"},
    ]))

    entities = load_builtin_catalog(path)

    assert [e.id for e in entities] == ["ok"]
    assert entities[0].owner_tenant is None


def test_missing_catalog_file_is_empty(tmp_path):
    assert load_builtin_catalog(tmp_path / "nope.json") == []


def test_add_and_list_repositories(data_dir):
    catalog = Catalog(data_dir, builtin=[])
    entity = catalog.add_repository("T1", "Someone/Tool")

    assert entity.id == repository_entity_id("T1", "Someone/Tool") == "repo:T1:someone/tool"
    assert entity.owner_tenant == "T1"
    assert entity.sources == {"github": "Someone/Tool"}
    assert catalog.entities(Category.USER_REPOSITORY) == [entity]

    reloaded = Catalog(data_dir, builtin=[])
    assert [e.id for e in reloaded.repositories_for("T1")] == [entity.id]
    assert reloaded.repositories_for("T2") == []


def test_same_repository_can_be_tracked_by_two_tenants(data_dir):
    catalog = Catalog(data_dir, builtin=[])
    catalog.add_repository("T1", "someone/tool")
    catalog.add_repository("T2", "someone/tool")
    assert len(catalog.entities(Category.USER_REPOSITORY)) == 2


def test_duplicate_and_invalid_repositories_rejected(data_dir):
    catalog = Catalog(data_dir, builtin=[])
    catalog.add_repository("T1", "someone/tool")

    with pytest.raises(DuplicateEntityError):
        catalog.add_repository("T1", "someone/tool")
    with pytest.raises(ValueError):
        catalog.add_repository("T1", "not a repo")


def test_only_owner_may_remove_repository(data_dir):
    catalog = Catalog(data_dir, builtin=[])
    catalog.add_repository("T1", "someone/tool")

    with pytest.raises(OwnershipError):
        catalog.remove_repository("T2", "someone/tool")
    with pytest.raises(UnknownEntityError):
        catalog.remove_repository("T2", "nobody/nothing")

    removed = catalog.remove_repository("T1", "someone/tool")
    assert removed.owner_tenant == "T1"
    assert Catalog(data_dir, builtin=[]).repositories_for("T1") == []


def test_builtin_entities_cannot_be_removed(data_dir):
    builtin = TrackedEntity(id="atmosphere", category=Category.FIRMWARE, name="Atmosphère")
    catalog = Catalog(data_dir, builtin=[builtin])

    with pytest.raises(OwnershipError):
        catalog.remove_entity("T1", "atmosphere")
    assert catalog.get("atmosphere") is builtin
