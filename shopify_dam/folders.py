# folders.py
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Set

from .exceptions import ConflictError, NotFoundError, ValidationError
from .files import matches_query, release_assets
from .naming import clean_name, name_key
from .storage.dto import Breadcrumb, Catalog, FileRecord, Folder, ROOT_FOLDER_ID, utcnow
from .uploader import PendingAssetDeletions, UploadStager

SORT_FIELDS = ("name", "size", "date", "type")
SORT_ORDERS = ("asc", "desc")


class FolderTree:
    """
    Operations over the folder hierarchy of one loaded catalog.
    Only `parent_id` is stored; paths and breadcrumbs are derived by walking it.
    """

    def __init__(
        self,
        catalog: Catalog,
        stager: Optional[UploadStager | PendingAssetDeletions] = None,
    ):
        self.catalog = catalog
        self.stager = stager

    # --- Lookups ---

    def get_folder(self, folder_id: str) -> Folder:
        folder = self.catalog.folders.get(folder_id)
        if folder is None:
            raise NotFoundError(f"Folder '{folder_id}' not found")
        return folder

    def children_index(self) -> Dict[str, List[str]]:
        index = defaultdict(list)
        for folder in self.catalog.folders.values():
            if folder.parent_id is not None:
                index[folder.parent_id].append(folder.id)
        return index

    def child_folders(self, parent_id: str) -> List[Folder]:
        return [f for f in self.catalog.folders.values() if f.parent_id == parent_id]

    def child_files(self, folder_id: str) -> List[FileRecord]:
        return [f for f in self.catalog.files.values() if f.folder_id == folder_id]

    def item_count(self, folder_id: str) -> int:
        return len(self.child_folders(folder_id)) + len(self.child_files(folder_id))

    def _ensure_unique_sibling(
        self, name: str, parent_id: str, exclude_id: Optional[str] = None
    ) -> None:
        key = name_key(name)
        for sibling in self.child_folders(parent_id):
            if sibling.id != exclude_id and name_key(sibling.name) == key:
                raise ConflictError(f"A folder named '{name}' already exists here")

    @staticmethod
    def _ensure_not_root(folder_id: str, action: str) -> None:
        if folder_id == ROOT_FOLDER_ID:
            raise ConflictError(f"The root folder cannot be {action}")

    # --- Queries ---

    def get_descendants(self, folder_id: str) -> Set[str]:
        """Depth-first collection of every folder id below `folder_id`."""
        self.get_folder(folder_id)
        index = self.children_index()
        descendants: Set[str] = set()
        stack = list(index.get(folder_id, []))
        while stack:
            current = stack.pop()
            if current in descendants or current == folder_id:
                continue
            descendants.add(current)
            stack.extend(index.get(current, []))
        return descendants

    def get_breadcrumbs(self, folder_id: str) -> List[Breadcrumb]:
        """Ancestors of `folder_id` (itself included), root first."""
        trail: List[Breadcrumb] = []
        seen: Set[str] = set()
        current: Optional[Folder] = self.get_folder(folder_id)
        while current is not None:
            if current.id in seen:
                raise ConflictError(f"Folder hierarchy contains a cycle at '{current.id}'")
            seen.add(current.id)
            trail.append(Breadcrumb(id=current.id, name=current.name))
            if current.parent_id is None:
                break
            current = self.catalog.folders.get(current.parent_id)
            if current is None:
                raise NotFoundError(f"Parent of folder '{trail[-1].id}' not found")
        trail.reverse()
        return trail

    def get_contents(
        self,
        folder_id: str,
        sort_by: str = "name",
        sort_order: str = "asc",
        search: Optional[str] = None,
    ) -> dict:
        """
        Direct child folders and files of a folder, optionally filtered by a
        case-insensitive substring and sorted with a stable name tie-break.
        """
        folder = self.get_folder(folder_id)
        sort_by = (sort_by or "name").lower()
        sort_order = (sort_order or "asc").lower()
        if sort_by not in SORT_FIELDS:
            raise ValidationError(f"sortBy must be one of: {', '.join(SORT_FIELDS)}")
        if sort_order not in SORT_ORDERS:
            raise ValidationError(f"sortOrder must be one of: {', '.join(SORT_ORDERS)}")

        folders = self.child_folders(folder_id)
        files = self.child_files(folder_id)
        if search:
            needle = search.casefold()
            folders = [f for f in folders if needle in f.name.casefold()]
            files = [f for f in files if matches_query(f, needle)]

        reverse = sort_order == "desc"
        # Name order first; the stable second sort keeps it for ties.
        folders.sort(key=lambda f: name_key(f.name))
        files.sort(key=lambda f: name_key(f.name))
        if sort_by == "name":
            folders.sort(key=lambda f: name_key(f.name), reverse=reverse)
            files.sort(key=lambda f: name_key(f.name), reverse=reverse)
        elif sort_by == "date":
            folders.sort(key=lambda f: f.created_at, reverse=reverse)
            files.sort(key=lambda f: f.created_at, reverse=reverse)
        elif sort_by == "size":
            folders.sort(key=lambda f: self.item_count(f.id), reverse=reverse)
            files.sort(key=lambda f: f.size, reverse=reverse)
        elif sort_by == "type":
            files.sort(key=lambda f: (f.category, f.mime_type), reverse=reverse)

        return {
            "folder": folder,
            "breadcrumbs": self.get_breadcrumbs(folder_id),
            "folders": folders,
            "files": files,
        }

    def get_tree(self, folder_id: str = ROOT_FOLDER_ID) -> dict:
        """Nested {id, name, children} structure, children sorted by name."""
        index = self.children_index()

        def build(node_id: str) -> dict:
            node = self.catalog.folders[node_id]
            children = sorted(
                (self.catalog.folders[c] for c in index.get(node_id, [])),
                key=lambda f: name_key(f.name),
            )
            return {
                "id": node.id,
                "name": node.name,
                "color": node.color,
                "fileCount": len(self.child_files(node.id)),
                "children": [build(child.id) for child in children],
            }

        self.get_folder(folder_id)
        return build(folder_id)

    # --- Mutations ---

    def create_folder(
        self,
        name: str,
        parent_id: str = ROOT_FOLDER_ID,
        actor: Optional[str] = None,
        color: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Folder:
        name = clean_name(name, "Folder")
        parent_id = parent_id or ROOT_FOLDER_ID
        if parent_id not in self.catalog.folders:
            raise NotFoundError(f"Parent folder '{parent_id}' not found")
        self._ensure_unique_sibling(name, parent_id)

        folder = Folder(
            name=name,
            parent_id=parent_id,
            created_by=actor,
            color=color,
            description=description,
        )
        self.catalog.folders[folder.id] = folder
        logging.info(f"Created folder '{name}' ({folder.id}) under {parent_id}.")
        return folder

    def rename_folder(self, folder_id: str, new_name: str) -> Folder:
        self._ensure_not_root(folder_id, "renamed")
        folder = self.get_folder(folder_id)
        new_name = clean_name(new_name, "Folder")
        self._ensure_unique_sibling(new_name, folder.parent_id, exclude_id=folder_id)

        old_name = folder.name
        folder.name = new_name
        folder.updated_at = utcnow()
        logging.info(f"Renamed folder {folder_id} from '{old_name}' to '{new_name}'.")
        return folder

    def move_folder(self, folder_id: str, new_parent_id: str) -> Folder:
        self._ensure_not_root(folder_id, "moved")
        folder = self.get_folder(folder_id)
        if new_parent_id not in self.catalog.folders:
            raise NotFoundError(f"Destination folder '{new_parent_id}' not found")
        if new_parent_id == folder_id or new_parent_id in self.get_descendants(folder_id):
            raise ConflictError("Cannot move a folder into its own subfolder")
        if folder.parent_id == new_parent_id:
            return folder
        self._ensure_unique_sibling(folder.name, new_parent_id, exclude_id=folder_id)

        folder.parent_id = new_parent_id
        folder.updated_at = utcnow()
        logging.info(f"Moved folder {folder_id} under {new_parent_id}.")
        return folder

    def update_folder(self, folder_id: str, changes: dict) -> Folder:
        """Applies the `color` and `description` keys of `changes`; others are ignored."""
        folder = self.get_folder(folder_id)
        for field in ("color", "description"):
            if field in changes:
                setattr(folder, field, changes[field])
        folder.updated_at = utcnow()
        logging.info(f"Updated folder {folder_id}.")
        return folder

    def delete_folder(self, folder_id: str) -> dict:
        """
        Removes a folder, every descendant folder and every file they contain.
        External assets are released best-effort.
        """
        self._ensure_not_root(folder_id, "deleted")
        self.get_folder(folder_id)
        doomed = {folder_id} | self.get_descendants(folder_id)

        removed_files = [
            f for f in self.catalog.files.values() if f.folder_id in doomed
        ]
        for record in removed_files:
            del self.catalog.files[record.id]
        for doomed_id in doomed:
            del self.catalog.folders[doomed_id]

        release_assets(self.catalog, removed_files, self.stager)
        logging.info(
            f"Deleted folder {folder_id} with {len(doomed)} folder(s) and {len(removed_files)} file(s)."
        )
        return {"deletedFolders": len(doomed), "deletedFiles": len(removed_files)}
