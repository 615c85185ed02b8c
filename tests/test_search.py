# tests/test_search.py
import pytest

from shopify_dam.exceptions import NotFoundError, ValidationError
from shopify_dam.folders import FolderTree
from shopify_dam.search import SearchEngine
from shopify_dam.storage.dto import FileRecord, ROOT_FOLDER_ID


def add_file(catalog, name, folder_id=ROOT_FOLDER_ID, mime_type="image/png", category="image", **extra):
    record = FileRecord(
        name=name, mime_type=mime_type, category=category, folder_id=folder_id, **extra
    )
    catalog.files[record.id] = record
    return record


@pytest.fixture
def populated(catalog):
    tree = FolderTree(catalog)
    logos = tree.create_folder("Logos", ROOT_FOLDER_ID)
    tree.create_folder("Old logos", logos.id)
    add_file(catalog, "logo", logos.id, tags=["brand"])
    add_file(catalog, "logo-dark.png", logos.id, tags=["brand", "dark"])
    add_file(catalog, "banner.png", description="Uses the new logo", tags=["campaign"])
    add_file(
        catalog, "Brand logo guide.pdf", mime_type="application/pdf", category="pdf"
    )
    add_file(catalog, "unrelated.png")
    return catalog, logos


def test_search_ranks_exact_then_prefix_then_partial(populated):
    catalog, _ = populated

    result = SearchEngine(catalog).search("LOGO")

    files = [f.name for f in result["files"]]
    assert files == ["logo", "logo-dark.png", "banner.png", "Brand logo guide.pdf"]
    assert [f.name for f in result["folders"]] == ["Logos", "Old logos"]
    assert result["totalResults"] == 6
    assert result["truncated"] is False


def test_search_orders_folders_and_files_by_rank_together(populated):
    catalog, _ = populated

    result = SearchEngine(catalog).search("logo", limit=3)

    # "logo" is exact; "logo-dark.png" and "Logos" are prefixes.
    assert [f.name for f in result["files"]] == ["logo", "logo-dark.png"]
    assert [f.name for f in result["folders"]] == ["Logos"]
    assert result["totalResults"] == 6
    assert result["truncated"] is True


def test_search_excludes_root(catalog):
    result = SearchEngine(catalog).search("my files")
    assert result["folders"] == []
    assert result["totalResults"] == 0


def test_search_tag_filter_requires_all_tags(populated):
    catalog, _ = populated

    result = SearchEngine(catalog).search("logo", tag_filter=["BRAND", "dark"])

    assert [f.name for f in result["files"]] == ["logo-dark.png"]
    assert result["folders"] == []


def test_search_folder_scope_includes_descendants(populated):
    catalog, logos = populated

    result = SearchEngine(catalog).search("logo", folder_scope=logos.id)

    assert {f.name for f in result["files"]} == {"logo", "logo-dark.png"}
    assert [f.name for f in result["folders"]] == ["Old logos"]


def test_search_category_filter(populated):
    catalog, _ = populated

    result = SearchEngine(catalog).search("logo", categories=["pdf"])

    assert [f.name for f in result["files"]] == ["Brand logo guide.pdf"]


def test_search_default_limit(catalog):
    for i in range(5):
        add_file(catalog, f"photo-{i}.png")

    result = SearchEngine(catalog, default_limit=2).search("photo")

    assert len(result["files"]) == 2
    assert result["truncated"] is True


@pytest.mark.parametrize(
    "kwargs",
    [
        {"query": "   "},
        {"query": "logo", "limit": 0},
        {"query": "logo", "categories": ["holograms"]},
    ],
)
def test_search_invalid_input_raises_validation(catalog, kwargs):
    with pytest.raises(ValidationError):
        SearchEngine(catalog).search(**kwargs)


def test_search_unknown_scope_raises_not_found(catalog):
    with pytest.raises(NotFoundError):
        SearchEngine(catalog).search("logo", folder_scope="dam_missing")
