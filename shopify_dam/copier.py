# copier.py
import logging
from collections import deque
from typing import Dict, List, Optional

from .exceptions import ConflictError
from .folders import FolderTree
from .naming import unique_name
from .storage.dto import Catalog, FileRecord, Folder, ROOT_FOLDER_ID, generate_id, utcnow


class DeepCopyEngine:
    """Duplicates a folder subtree, with fresh ids, under another folder."""

    def __init__(self, catalog: Catalog):
        self.catalog = catalog
        self.tree = FolderTree(catalog)

    def copy_subtree(
        self,
        source_folder_id: str,
        destination_folder_id: str,
        actor: Optional[str] = None,
    ) -> List[Folder | FileRecord]:
        """
        Clones the source folder, its descendant folders and all their files
        under the destination. The top clone gets a " (n)" suffix when its
        name is taken at the destination. Copied files share the source's
        external asset. Returns the new records, folders first.
        """
        if source_folder_id == ROOT_FOLDER_ID:
            raise ConflictError("The root folder cannot be copied")
        source = self.tree.get_folder(source_folder_id)
        self.tree.get_folder(destination_folder_id)

        # Snapshot the subtree before inserting, so copying into a
        # descendant of the source does not pick up the clones.
        index = self.tree.children_index()
        order: List[str] = []
        queue = deque([source_folder_id])
        while queue:
            current = queue.popleft()
            order.append(current)
            queue.extend(index.get(current, []))
        members = set(order)
        source_files = [f for f in self.catalog.files.values() if f.folder_id in members]

        now = utcnow()
        id_map: Dict[str, str] = {}
        created: List[Folder | FileRecord] = []

        for old_id in order:
            old = self.catalog.folders[old_id]
            if old_id == source_folder_id:
                parent_id = destination_folder_id
                taken = [f.name for f in self.tree.child_folders(destination_folder_id)]
                name = unique_name(old.name, taken)
            else:
                parent_id = id_map[old.parent_id]
                name = old.name
            clone = old.model_copy(
                deep=True,
                update={
                    "id": generate_id(),
                    "name": name,
                    "parent_id": parent_id,
                    "created_at": now,
                    "updated_at": now,
                    "created_by": actor,
                },
            )
            self.catalog.folders[clone.id] = clone
            id_map[old_id] = clone.id
            created.append(clone)

        for record in source_files:
            clone = record.model_copy(
                deep=True,
                update={
                    "id": generate_id(),
                    "folder_id": id_map[record.folder_id],
                    "downloads": 0,
                    "last_downloaded": None,
                    "created_at": now,
                    "updated_at": now,
                    "created_by": actor,
                },
            )
            self.catalog.files[clone.id] = clone
            created.append(clone)

        logging.info(
            f"Copied folder '{source.name}' ({source_folder_id}) to {destination_folder_id}: "
            f"{len(order)} folder(s), {len(source_files)} file(s)."
        )
        return created
