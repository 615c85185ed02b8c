# tests/test_files.py
import pytest
from datetime import timedelta
from unittest.mock import MagicMock

from shopify_dam.exceptions import ConflictError, NotFoundError, ValidationError
from shopify_dam.files import (
    FileCatalog,
    categorize,
    normalize_tags,
    release_assets,
    validate_upload,
)
from shopify_dam.folders import FolderTree
from shopify_dam.storage.dto import ROOT_FOLDER_ID, StagedAsset


@pytest.fixture
def files(catalog, mock_settings):
    return FileCatalog(catalog, mock_settings)


def make_asset(n=1):
    return StagedAsset(
        external_asset_id=f"gid://shopify/MediaImage/{n}",
        url=f"https://cdn.example.com/{n}.png",
    )


@pytest.mark.parametrize(
    "mime_type, expected",
    [
        ("image/png", "image"),
        ("video/mp4", "video"),
        ("audio/mpeg", "audio"),
        ("application/pdf", "pdf"),
        ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", "spreadsheet"),
        ("application/vnd.ms-excel", "spreadsheet"),
        ("text/csv", "spreadsheet"),
        ("application/vnd.openxmlformats-officedocument.wordprocessingml.document", "document"),
        ("text/plain", "document"),
        ("application/zip", "archive"),
        ("application/octet-stream", "other"),
        (None, "other"),
    ],
)
def test_categorize(mime_type, expected):
    assert categorize(mime_type) == expected


def test_normalize_tags():
    assert normalize_tags([" Summer ", "summer", "", "Sale"]) == ["Summer", "Sale"]
    assert normalize_tags(None) == []


def test_validate_upload_accepts_allowed_type(mock_settings):
    assert validate_upload(mock_settings, "logo.png", "Image/PNG; charset=binary", 10) == "image/png"


def test_validate_upload_rejects_oversized_file(mock_settings):
    with pytest.raises(ValidationError, match="maximum size"):
        validate_upload(mock_settings, "big.mp4", "video/mp4", 60 * 1024 * 1024)


@pytest.mark.parametrize(
    "name, mime_type, size",
    [
        ("tool.exe", "application/x-msdownload", 10),
        ("logo.png", None, 10),
        ("empty.png", "image/png", 0),
        ("", "image/png", 10),
    ],
)
def test_validate_upload_rejects_invalid_input(mock_settings, name, mime_type, size):
    with pytest.raises(ValidationError):
        validate_upload(mock_settings, name, mime_type, size)


def test_create_file_record(files, catalog):
    record = files.create_file_record(
        name="logo.png",
        mime_type="image/png",
        size=1234,
        folder_id=ROOT_FOLDER_ID,
        asset=make_asset(),
        description="Main logo",
        tags=["brand", "Brand", "logo"],
        actor="ann@example.com",
    )

    assert catalog.files[record.id] is record
    assert record.category == "image"
    assert record.external_asset_id == "gid://shopify/MediaImage/1"
    assert record.tags == ["brand", "logo"]
    assert record.downloads == 0
    assert record.to_wire()["folderId"] == ROOT_FOLDER_ID


def test_create_file_record_disambiguates_duplicate_name(files):
    first = files.create_file_record("logo.png", "image/png", 10, ROOT_FOLDER_ID, make_asset(1))
    second = files.create_file_record("logo.png", "image/png", 10, ROOT_FOLDER_ID, make_asset(2))
    third = files.create_file_record("LOGO.png", "image/png", 10, ROOT_FOLDER_ID, make_asset(3))

    assert first.name == "logo.png"
    assert second.name == "logo (1).png"
    assert second.original_name == "logo.png"
    assert third.name == "LOGO (2).png"


def test_create_file_record_missing_folder_raises_not_found(files):
    with pytest.raises(NotFoundError):
        files.create_file_record("logo.png", "image/png", 10, "dam_missing", make_asset())


def test_rename_file_conflict(files):
    files.create_file_record("a.png", "image/png", 10, ROOT_FOLDER_ID, make_asset(1))
    b = files.create_file_record("b.png", "image/png", 10, ROOT_FOLDER_ID, make_asset(2))

    with pytest.raises(ConflictError):
        files.rename_file(b.id, "A.PNG")
    assert files.rename_file(b.id, "c.png").name == "c.png"


def test_move_file(files, catalog):
    folder = FolderTree(catalog).create_folder("Logos", ROOT_FOLDER_ID)
    record = files.create_file_record("a.png", "image/png", 10, ROOT_FOLDER_ID, make_asset())

    assert files.move_file(record.id, folder.id).folder_id == folder.id
    with pytest.raises(NotFoundError):
        files.move_file(record.id, "dam_missing")


def test_move_file_name_collision_raises_conflict(files, catalog):
    folder = FolderTree(catalog).create_folder("Logos", ROOT_FOLDER_ID)
    files.create_file_record("a.png", "image/png", 10, folder.id, make_asset(1))
    record = files.create_file_record("a.png", "image/png", 10, ROOT_FOLDER_ID, make_asset(2))

    with pytest.raises(ConflictError):
        files.move_file(record.id, folder.id)


def test_update_file_whitelist(files):
    record = files.create_file_record("a.png", "image/png", 10, ROOT_FOLDER_ID, make_asset())

    updated = files.update_file(
        record.id, {"description": "New", "tags": ["x", " y "], "size": 1, "url": "evil"}
    )

    assert updated.description == "New"
    assert updated.tags == ["x", "y"]
    assert updated.size == 10
    assert updated.url == "https://cdn.example.com/1.png"


def test_copy_file_shares_asset_and_resets_downloads(files, catalog):
    record = files.create_file_record("a.png", "image/png", 10, ROOT_FOLDER_ID, make_asset())
    files.record_download(record.id)

    clone = files.copy_file(record.id, ROOT_FOLDER_ID, actor="bob@example.com")

    assert clone.id != record.id
    assert clone.name == "a (1).png"
    assert clone.external_asset_id == record.external_asset_id
    assert clone.downloads == 0
    assert clone.last_downloaded is None
    assert record.downloads == 1
    assert len(catalog.files) == 2


def test_delete_file_releases_asset(catalog, mock_settings):
    stager = MagicMock()
    files = FileCatalog(catalog, mock_settings, stager)
    record = files.create_file_record("a.png", "image/png", 10, ROOT_FOLDER_ID, make_asset())

    files.delete_file(record.id)

    assert record.id not in catalog.files
    stager.delete_asset.assert_called_once_with("gid://shopify/MediaImage/1")
    with pytest.raises(NotFoundError):
        files.delete_file(record.id)


def test_release_assets_skips_shared_and_duplicate_assets(files, catalog):
    stager = MagicMock()
    kept = files.create_file_record("a.png", "image/png", 10, ROOT_FOLDER_ID, make_asset(1))
    copy = files.copy_file(kept.id, ROOT_FOLDER_ID)
    other = files.create_file_record("b.png", "image/png", 10, ROOT_FOLDER_ID, make_asset(2))
    other_copy = files.copy_file(other.id, ROOT_FOLDER_ID)
    for record in (copy, other, other_copy):
        del catalog.files[record.id]

    released = release_assets(catalog, [copy, other, other_copy], stager)

    assert released == 1
    stager.delete_asset.assert_called_once_with("gid://shopify/MediaImage/2")


def test_recent_files_and_categories(files):
    first = files.create_file_record("a.png", "image/png", 10, ROOT_FOLDER_ID, make_asset(1))
    second = files.create_file_record("b.pdf", "application/pdf", 10, ROOT_FOLDER_ID, make_asset(2))
    first.created_at -= timedelta(minutes=1)

    assert [f.id for f in files.recent_files(1)] == [second.id]
    assert [f.id for f in files.files_by_category(["image"])] == [first.id]
    with pytest.raises(ValidationError):
        files.files_by_category(["holograms"])
