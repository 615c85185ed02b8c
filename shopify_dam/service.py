# service.py
import logging
from contextlib import contextmanager
from typing import Iterable, List, Optional

from .access import AccessController, Permission
from .config import Settings, get_settings
from .copier import DeepCopyEngine
from .exceptions import DamError, ValidationError
from .files import FileCatalog, validate_upload
from .folders import FolderTree
from .search import SearchEngine
from .shopify import ShopifyFilesClient
from .storage.base import ContentHostClient, MetadataStore
from .storage.dto import Catalog, FileRecord, Folder, ROOT_FOLDER_ID
from .storage.json_store import JsonFileMetadataStore
from .uploader import PendingAssetDeletions, UploadStager

ITEM_TYPES = ("folder", "file")


def build_content_host(settings: Settings) -> Optional[ContentHostClient]:
    """Returns the configured content host client, or None when Shopify is not configured."""
    if not settings.shopify_configured:
        return None
    return ShopifyFilesClient(
        store_domain=settings.SHOPIFY_STORE_DOMAIN,
        access_token=settings.SHOPIFY_ACCESS_TOKEN,
        api_version=settings.SHOPIFY_API_VERSION,
        timeout=settings.SHOPIFY_REQUEST_TIMEOUT,
    )


def build_store(settings: Settings) -> MetadataStore:
    return JsonFileMetadataStore(settings.CATALOG_PATH, root_name=settings.DAM_ROOT_NAME)


def folder_to_wire(tree: FolderTree, folder: Folder) -> dict:
    data = folder.to_wire()
    data["itemCount"] = tree.item_count(folder.id)
    return data


def _check_items(items) -> List[dict]:
    if not isinstance(items, list) or not items:
        raise ValidationError("Items array is required")
    return items


class DamService:
    """
    Entry point for every asset manager operation.
    Each call authorizes the caller, loads the catalog, works on that copy
    and, for mutations, saves it back. No state is kept between calls.
    """

    def __init__(
        self,
        store: MetadataStore,
        settings: Optional[Settings] = None,
        host: Optional[ContentHostClient] = None,
        access: Optional[AccessController] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.stager = UploadStager(host)
        self.access = access or AccessController(self.settings)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "DamService":
        settings = settings or get_settings()
        return cls(
            store=build_store(settings),
            settings=settings,
            host=build_content_host(settings),
        )

    # --- Plumbing ---

    def _load_for_read(self, user_tags) -> Catalog:
        self.access.require(Permission.READ, user_tags)
        return self.store.load()

    @contextmanager
    def _mutation(self, user_tags, permission: Permission = Permission.WRITE):
        """
        Authorizes, loads, yields (catalog, pending deletions) and saves.
        External assets are only deleted once the save has succeeded.
        """
        self.access.require(permission, user_tags)
        catalog = self.store.load()
        pending = PendingAssetDeletions(self.stager)
        yield catalog, pending
        self.store.save(catalog)
        pending.flush()

    # --- Folders ---

    def get_contents(
        self,
        folder_id: str = ROOT_FOLDER_ID,
        sort_by: str = "name",
        sort_order: str = "asc",
        search: Optional[str] = None,
        user_tags=None,
    ) -> dict:
        catalog = self._load_for_read(user_tags)
        tree = FolderTree(catalog)
        contents = tree.get_contents(folder_id or ROOT_FOLDER_ID, sort_by, sort_order, search)
        return {
            "folder": folder_to_wire(tree, contents["folder"]),
            "breadcrumbs": [b.to_wire() for b in contents["breadcrumbs"]],
            "folders": [folder_to_wire(tree, f) for f in contents["folders"]],
            "files": [f.to_wire() for f in contents["files"]],
        }

    def get_breadcrumbs(self, folder_id: str, user_tags=None) -> List[dict]:
        catalog = self._load_for_read(user_tags)
        return [b.to_wire() for b in FolderTree(catalog).get_breadcrumbs(folder_id)]

    def get_folder(self, folder_id: str, user_tags=None) -> dict:
        catalog = self._load_for_read(user_tags)
        tree = FolderTree(catalog)
        return folder_to_wire(tree, tree.get_folder(folder_id))

    def create_folder(
        self,
        name: str,
        parent_id: str = ROOT_FOLDER_ID,
        actor: Optional[str] = None,
        color: Optional[str] = None,
        description: Optional[str] = None,
        user_tags=None,
    ) -> dict:
        with self._mutation(user_tags) as (catalog, _):
            tree = FolderTree(catalog)
            folder = tree.create_folder(name, parent_id, actor, color, description)
        return folder_to_wire(tree, folder)

    def rename_folder(self, folder_id: str, new_name: str, user_tags=None) -> dict:
        with self._mutation(user_tags) as (catalog, _):
            tree = FolderTree(catalog)
            folder = tree.rename_folder(folder_id, new_name)
        return folder_to_wire(tree, folder)

    def move_folder(self, folder_id: str, new_parent_id: str, user_tags=None) -> dict:
        with self._mutation(user_tags) as (catalog, _):
            tree = FolderTree(catalog)
            folder = tree.move_folder(folder_id, new_parent_id)
        return folder_to_wire(tree, folder)

    def update_folder(self, folder_id: str, changes: dict, user_tags=None) -> dict:
        with self._mutation(user_tags) as (catalog, _):
            tree = FolderTree(catalog)
            folder = tree.update_folder(folder_id, changes)
        return folder_to_wire(tree, folder)

    def delete_folder(self, folder_id: str, user_tags=None) -> dict:
        with self._mutation(user_tags) as (catalog, pending):
            result = FolderTree(catalog, pending).delete_folder(folder_id)
        return result

    def copy_folder(
        self,
        source_folder_id: str,
        destination_folder_id: str,
        actor: Optional[str] = None,
        user_tags=None,
    ) -> dict:
        with self._mutation(user_tags) as (catalog, _):
            created = DeepCopyEngine(catalog).copy_subtree(
                source_folder_id, destination_folder_id, actor
            )
        tree = FolderTree(catalog)
        folders = [r for r in created if isinstance(r, Folder)]
        files = [r for r in created if isinstance(r, FileRecord)]
        return {
            "folder": folder_to_wire(tree, folders[0]),
            "folders": [folder_to_wire(tree, f) for f in folders],
            "files": [f.to_wire() for f in files],
        }

    def get_tree(self, user_tags=None) -> dict:
        catalog = self._load_for_read(user_tags)
        return FolderTree(catalog).get_tree()

    # --- Files ---

    def upload_file(
        self,
        filename: str,
        mime_type: Optional[str],
        data: bytes,
        folder_id: str = ROOT_FOLDER_ID,
        description: str = "",
        tags: Iterable[str] | None = None,
        actor: Optional[str] = None,
        user_tags=None,
    ) -> dict:
        """
        Validates the upload, publishes it to the content host and records it.
        Size and type are checked before anything touches the network.
        """
        self.access.require(Permission.WRITE, user_tags)
        folder_id = folder_id or ROOT_FOLDER_ID
        if data is None:
            raise ValidationError("No file provided")
        mime_type = validate_upload(self.settings, filename, mime_type, len(data))

        FileCatalog(self.store.load(), self.settings).require_folder(folder_id)
        asset = self.stager.upload(filename, mime_type, data)

        try:
            with self._mutation(user_tags) as (catalog, _):
                record = FileCatalog(catalog, self.settings).create_file_record(
                    name=filename,
                    mime_type=mime_type,
                    size=len(data),
                    folder_id=folder_id,
                    asset=asset,
                    description=description,
                    tags=tags,
                    actor=actor,
                )
        except Exception:
            # The asset was published but no record points at it.
            logging.error(
                f"Recording upload '{filename}' failed. Removing asset {asset.external_asset_id}."
            )
            self.stager.delete_asset(asset.external_asset_id)
            raise
        return record.to_wire()

    def get_file(self, file_id: str, user_tags=None) -> dict:
        catalog = self._load_for_read(user_tags)
        return FileCatalog(catalog, self.settings).get_file(file_id).to_wire()

    def rename_file(self, file_id: str, new_name: str, user_tags=None) -> dict:
        with self._mutation(user_tags) as (catalog, _):
            record = FileCatalog(catalog, self.settings).rename_file(file_id, new_name)
        return record.to_wire()

    def move_file(self, file_id: str, new_folder_id: str, user_tags=None) -> dict:
        with self._mutation(user_tags) as (catalog, _):
            record = FileCatalog(catalog, self.settings).move_file(file_id, new_folder_id)
        return record.to_wire()

    def update_file(self, file_id: str, changes: dict, user_tags=None) -> dict:
        with self._mutation(user_tags) as (catalog, _):
            record = FileCatalog(catalog, self.settings).update_file(file_id, changes)
        return record.to_wire()

    def copy_file(
        self,
        file_id: str,
        destination_folder_id: str,
        actor: Optional[str] = None,
        user_tags=None,
    ) -> dict:
        with self._mutation(user_tags) as (catalog, _):
            record = FileCatalog(catalog, self.settings).copy_file(
                file_id, destination_folder_id, actor
            )
        return record.to_wire()

    def delete_file(self, file_id: str, user_tags=None) -> dict:
        with self._mutation(user_tags) as (catalog, pending):
            record = FileCatalog(catalog, self.settings, pending).delete_file(file_id)
        return {"deletedFiles": 1, "file": record.to_wire()}

    def download(self, file_id: str, user_tags=None) -> dict:
        """Records a download. Needs read access only."""
        with self._mutation(user_tags, Permission.READ) as (catalog, _):
            record = FileCatalog(catalog, self.settings).record_download(file_id)
        return {"file": record.to_wire(), "downloadUrl": record.url}

    def get_recent(self, limit: Optional[int] = None, user_tags=None) -> List[dict]:
        catalog = self._load_for_read(user_tags)
        limit = self.settings.DAM_RECENT_LIMIT if limit is None else limit
        return [f.to_wire() for f in FileCatalog(catalog, self.settings).recent_files(limit)]

    def get_by_category(self, categories: Iterable[str], user_tags=None) -> List[dict]:
        catalog = self._load_for_read(user_tags)
        files = FileCatalog(catalog, self.settings).files_by_category(categories)
        return [f.to_wire() for f in files]

    # --- Bulk ---

    def _bulk(self, items, user_tags, apply) -> dict:
        items = _check_items(items)
        succeeded, failed = [], []
        with self._mutation(user_tags) as (catalog, pending):
            for item in items:
                try:
                    item_id = item.get("id") if isinstance(item, dict) else None
                    if not item_id or not isinstance(item_id, str):
                        raise ValidationError("Each item needs an id")
                    if item.get("type") not in ITEM_TYPES:
                        raise ValidationError("Item type must be 'folder' or 'file'")
                    apply(catalog, pending, item)
                    succeeded.append(item)
                except DamError as e:
                    failed.append({"item": item, "error": e.message})
        return {"succeeded": succeeded, "failed": failed}

    def bulk_move(self, items, destination_folder_id: str, user_tags=None) -> dict:
        def apply(catalog, pending, item):
            if item["type"] == "folder":
                FolderTree(catalog).move_folder(item["id"], destination_folder_id)
            else:
                FileCatalog(catalog, self.settings).move_file(item["id"], destination_folder_id)

        return self._bulk(items, user_tags, apply)

    def bulk_delete(self, items, user_tags=None) -> dict:
        def apply(catalog, pending, item):
            if item["type"] == "folder":
                FolderTree(catalog, pending).delete_folder(item["id"])
            else:
                FileCatalog(catalog, self.settings, pending).delete_file(item["id"])

        return self._bulk(items, user_tags, apply)

    def bulk_copy(
        self, items, destination_folder_id: str, actor: Optional[str] = None, user_tags=None
    ) -> dict:
        def apply(catalog, pending, item):
            if item["type"] == "folder":
                DeepCopyEngine(catalog).copy_subtree(item["id"], destination_folder_id, actor)
            else:
                FileCatalog(catalog, self.settings).copy_file(
                    item["id"], destination_folder_id, actor
                )

        return self._bulk(items, user_tags, apply)

    # --- Search and statistics ---

    def search(
        self,
        query: str,
        tag_filter: Iterable[str] | None = None,
        folder_scope: Optional[str] = None,
        categories: Iterable[str] | None = None,
        limit: Optional[int] = None,
        user_tags=None,
    ) -> dict:
        catalog = self._load_for_read(user_tags)
        tree = FolderTree(catalog)
        result = SearchEngine(catalog, self.settings.DAM_SEARCH_LIMIT).search(
            query, tag_filter, folder_scope, categories, limit
        )
        result["folders"] = [folder_to_wire(tree, f) for f in result["folders"]]
        result["files"] = [f.to_wire() for f in result["files"]]
        return result

    def get_stats(self, user_tags=None) -> dict:
        catalog = self._load_for_read(user_tags)
        by_category = {}
        for record in catalog.files.values():
            by_category[record.category] = by_category.get(record.category, 0) + 1
        return {
            "totalFiles": len(catalog.files),
            "totalFolders": len(catalog.folders) - 1,
            "totalSize": sum(f.size for f in catalog.files.values()),
            "totalDownloads": sum(f.downloads for f in catalog.files.values()),
            "filesByCategory": by_category,
        }
