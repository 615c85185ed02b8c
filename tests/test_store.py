# tests/test_store.py
import json

import pytest
from pydantic import ValidationError as SchemaError

from shopify_dam.exceptions import ConflictError
from shopify_dam.storage.dto import Folder, ROOT_FOLDER_ID
from shopify_dam.storage.json_store import JsonFileMetadataStore
from shopify_dam.storage.memory import InMemoryMetadataStore


@pytest.fixture(params=["json", "memory"])
def any_store(request, tmp_path):
    if request.param == "json":
        return JsonFileMetadataStore(tmp_path / "data" / "catalog.json", root_name="Library")
    return InMemoryMetadataStore(root_name="Library")


def test_first_load_creates_root(any_store):
    catalog = any_store.load()

    root = catalog.folders[ROOT_FOLDER_ID]
    assert root.name == "Library"
    assert root.parent_id is None
    assert catalog.files == {}
    assert catalog.version == 0


def test_save_then_load_round_trip(any_store):
    catalog = any_store.load()
    folder = Folder(name="Logos", parent_id=ROOT_FOLDER_ID)
    catalog.folders[folder.id] = folder

    any_store.save(catalog)
    reloaded = any_store.load()

    assert reloaded.version == 1
    assert reloaded.folders[folder.id].name == "Logos"
    assert reloaded.folders[folder.id].created_at == folder.created_at


def test_load_returns_independent_copies(any_store):
    first = any_store.load()
    first.folders[ROOT_FOLDER_ID].name = "Changed"

    assert any_store.load().folders[ROOT_FOLDER_ID].name == "Library"


def test_stale_save_raises_conflict(any_store):
    first = any_store.load()
    second = any_store.load()
    first.folders["dam_a"] = Folder(id="dam_a", name="A", parent_id=ROOT_FOLDER_ID)
    any_store.save(first)

    second.folders["dam_b"] = Folder(id="dam_b", name="B", parent_id=ROOT_FOLDER_ID)
    with pytest.raises(ConflictError):
        any_store.save(second)

    stored = any_store.load()
    assert "dam_a" in stored.folders
    assert "dam_b" not in stored.folders


def test_json_store_writes_camel_case_document(tmp_path):
    path = tmp_path / "catalog.json"
    store = JsonFileMetadataStore(path)
    catalog = store.load()
    folder = Folder(name="Logos", parent_id=ROOT_FOLDER_ID, created_by="ann@example.com")
    catalog.folders[folder.id] = folder
    store.save(catalog)

    document = json.loads(path.read_text(encoding="utf-8"))

    assert document["version"] == 1
    assert document["folders"][folder.id]["parentId"] == ROOT_FOLDER_ID
    assert document["folders"][folder.id]["createdBy"] == "ann@example.com"
    assert not list(tmp_path.glob(".tmp_*"))


def test_json_store_restores_missing_root(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"version": 3, "folders": {}, "files": {}}), encoding="utf-8")

    catalog = JsonFileMetadataStore(path).load()

    assert ROOT_FOLDER_ID in catalog.folders
    assert catalog.version == 3


def test_json_store_corrupted_document_raises(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(SchemaError):
        JsonFileMetadataStore(path).load()
