# search.py
from typing import Iterable, List, Optional, Set, Tuple

from .exceptions import ValidationError
from .files import CATEGORIES, matches_query
from .folders import FolderTree
from .naming import name_key
from .storage.dto import Catalog, FileRecord, Folder, ROOT_FOLDER_ID

EXACT, PREFIX, PARTIAL = 0, 1, 2


def _rank(name: str, needle: str) -> int:
    key = name_key(name)
    if key == needle:
        return EXACT
    if key.startswith(needle):
        return PREFIX
    return PARTIAL


class SearchEngine:
    """
    Case-insensitive substring search over folder and file records.
    Exact name matches rank first, then name prefixes, then everything else,
    alphabetically within each tier.
    """

    def __init__(self, catalog: Catalog, default_limit: int = 50):
        self.catalog = catalog
        self.default_limit = default_limit

    def _scope(self, folder_scope: Optional[str]) -> Optional[Set[str]]:
        if not folder_scope:
            return None
        tree = FolderTree(self.catalog)
        return {folder_scope} | tree.get_descendants(folder_scope)

    def search(
        self,
        query: str,
        tag_filter: Iterable[str] | None = None,
        folder_scope: Optional[str] = None,
        categories: Iterable[str] | None = None,
        limit: Optional[int] = None,
    ) -> dict:
        needle = (query or "").strip().casefold()
        if not needle:
            raise ValidationError("Search query is required")
        limit = self.default_limit if limit is None else limit
        if limit < 1:
            raise ValidationError("limit must be a positive number")

        tags = {t.strip().casefold() for t in tag_filter or [] if t and t.strip()}
        wanted = {c.strip().lower() for c in categories or [] if c and c.strip()}
        unknown = wanted - set(CATEGORIES)
        if unknown:
            raise ValidationError(f"Unknown categories: {', '.join(sorted(unknown))}")
        scope = self._scope(folder_scope)

        hits: List[Tuple[int, str, int, Folder | FileRecord]] = []

        # Folders carry neither tags nor a category, so file-only filters exclude them.
        if not tags and not wanted:
            for folder in self.catalog.folders.values():
                if folder.id == ROOT_FOLDER_ID or folder.id == folder_scope:
                    continue
                if scope is not None and folder.id not in scope:
                    continue
                if needle in folder.name.casefold():
                    hits.append((_rank(folder.name, needle), name_key(folder.name), 0, folder))

        for record in self.catalog.files.values():
            if scope is not None and record.folder_id not in scope:
                continue
            if wanted and record.category not in wanted:
                continue
            if tags and not tags <= {t.casefold() for t in record.tags}:
                continue
            if matches_query(record, needle):
                hits.append((_rank(record.name, needle), name_key(record.name), 1, record))

        hits.sort(key=lambda hit: hit[:3])
        kept = hits[:limit]
        return {
            "query": query,
            "folders": [hit[3] for hit in kept if hit[2] == 0],
            "files": [hit[3] for hit in kept if hit[2] == 1],
            "totalResults": len(hits),
            "truncated": len(hits) > limit,
        }
