# files.py
import logging
from typing import Iterable, List, Optional

from .config import Settings, get_settings
from .exceptions import ConflictError, NotFoundError, ValidationError
from .naming import clean_name, name_key, unique_name
from .storage.dto import Catalog, FileRecord, StagedAsset, generate_id, utcnow
from .uploader import PendingAssetDeletions, UploadStager

CATEGORIES = (
    "image",
    "video",
    "audio",
    "pdf",
    "document",
    "spreadsheet",
    "archive",
    "other",
)


def categorize(mime_type: Optional[str]) -> str:
    """Derives the display category of a file from its MIME type."""
    mime_type = (mime_type or "").lower()
    if not mime_type:
        return "other"
    if mime_type.startswith("image/"):
        return "image"
    if mime_type.startswith("video/"):
        return "video"
    if mime_type.startswith("audio/"):
        return "audio"
    if mime_type == "application/pdf":
        return "pdf"
    # Checked before "document": OOXML spreadsheets are "officedocument.spreadsheetml".
    if "sheet" in mime_type or "excel" in mime_type or mime_type == "text/csv":
        return "spreadsheet"
    if "word" in mime_type or "document" in mime_type or mime_type.startswith("text/"):
        return "document"
    if any(marker in mime_type for marker in ("zip", "rar", "tar", "7z", "gzip")):
        return "archive"
    return "other"


def normalize_tags(tags: Iterable[str] | None) -> List[str]:
    """Strips, drops empties and de-duplicates case-insensitively, keeping first spelling."""
    result: List[str] = []
    seen = set()
    for tag in tags or []:
        cleaned = str(tag).strip()
        if cleaned and cleaned.casefold() not in seen:
            seen.add(cleaned.casefold())
            result.append(cleaned)
    return result


def matches_query(record: FileRecord, needle: str) -> bool:
    """Case-insensitive substring match on name, description and tags. `needle` is casefolded."""
    if needle in record.name.casefold():
        return True
    if record.description and needle in record.description.casefold():
        return True
    return any(needle in tag.casefold() for tag in record.tags)


def validate_upload(
    settings: Settings, name: str, mime_type: Optional[str], size: int
) -> str:
    """
    Checks an upload against the name rules, the MIME allow-list and the
    size limit. Returns the normalized MIME type.
    """
    clean_name(name, "File")
    mime_type = (mime_type or "").split(";")[0].strip().lower()
    if not mime_type:
        raise ValidationError("File type could not be determined")
    if mime_type not in settings.DAM_ALLOWED_MIME_TYPES:
        raise ValidationError(f"File type '{mime_type}' is not allowed")
    if size <= 0:
        raise ValidationError("File is empty")
    if size > settings.DAM_MAX_FILE_SIZE:
        raise ValidationError(
            f"File exceeds the maximum size of {settings.DAM_MAX_FILE_SIZE} bytes"
        )
    return mime_type


def release_assets(
    catalog: Catalog,
    removed: Iterable[FileRecord],
    stager: Optional[UploadStager | PendingAssetDeletions],
) -> int:
    """
    Deletes the external assets of removed records, skipping assets that a
    remaining record still references (copies share their source's asset).
    Returns the number of assets deleted.
    """
    if stager is None:
        return 0
    still_used = {
        f.external_asset_id for f in catalog.files.values() if f.external_asset_id
    }
    released = set()
    for record in removed:
        asset_id = record.external_asset_id
        if not asset_id or asset_id in still_used or asset_id in released:
            continue
        released.add(asset_id)
        stager.delete_asset(asset_id)
    return len(released)


class FileCatalog:
    """Operations over the file records of one loaded catalog."""

    def __init__(
        self,
        catalog: Catalog,
        settings: Optional[Settings] = None,
        stager: Optional[UploadStager | PendingAssetDeletions] = None,
    ):
        self.catalog = catalog
        self.settings = settings or get_settings()
        self.stager = stager

    # --- Lookups ---

    def get_file(self, file_id: str) -> FileRecord:
        record = self.catalog.files.get(file_id)
        if record is None:
            raise NotFoundError(f"File '{file_id}' not found")
        return record

    def require_folder(self, folder_id: str, label: str = "Folder") -> None:
        if folder_id not in self.catalog.folders:
            raise NotFoundError(f"{label} '{folder_id}' not found")

    def _names_in(self, folder_id: str, exclude_id: Optional[str] = None) -> List[str]:
        return [
            f.name
            for f in self.catalog.files.values()
            if f.folder_id == folder_id and f.id != exclude_id
        ]

    def _ensure_unique(
        self, name: str, folder_id: str, exclude_id: Optional[str] = None
    ) -> None:
        key = name_key(name)
        if any(name_key(n) == key for n in self._names_in(folder_id, exclude_id)):
            raise ConflictError(f"A file named '{name}' already exists in this folder")

    def recent_files(self, limit: int) -> List[FileRecord]:
        files = sorted(self.catalog.files.values(), key=lambda f: f.created_at, reverse=True)
        return files[: max(limit, 0)]

    def files_by_category(self, categories: Iterable[str]) -> List[FileRecord]:
        wanted = {c.strip().lower() for c in categories if c and c.strip()}
        unknown = wanted - set(CATEGORIES)
        if unknown:
            raise ValidationError(f"Unknown categories: {', '.join(sorted(unknown))}")
        files = [f for f in self.catalog.files.values() if f.category in wanted]
        return sorted(files, key=lambda f: name_key(f.name))

    # --- Upload ---

    def create_file_record(
        self,
        name: str,
        mime_type: str,
        size: int,
        folder_id: str,
        asset: StagedAsset,
        description: str = "",
        tags: Iterable[str] | None = None,
        actor: Optional[str] = None,
    ) -> FileRecord:
        """
        Inserts the record of a published asset. A name already used in the
        folder gets a " (n)" suffix before its extension.
        """
        mime_type = validate_upload(self.settings, name, mime_type, size)
        self.require_folder(folder_id)
        original = clean_name(name, "File")
        final_name = unique_name(original, self._names_in(folder_id), keep_extension=True)

        record = FileRecord(
            name=final_name,
            original_name=original,
            mime_type=mime_type,
            size=size,
            category=categorize(mime_type),
            folder_id=folder_id,
            external_asset_id=asset.external_asset_id,
            url=asset.url,
            preview_url=asset.preview_url,
            description=description or "",
            tags=normalize_tags(tags),
            created_by=actor,
        )
        self.catalog.files[record.id] = record
        logging.info(f"Created file record '{final_name}' ({record.id}) in folder {folder_id}.")
        return record

    # --- Mutations ---

    def rename_file(self, file_id: str, new_name: str) -> FileRecord:
        record = self.get_file(file_id)
        new_name = clean_name(new_name, "File")
        self._ensure_unique(new_name, record.folder_id, exclude_id=file_id)

        old_name = record.name
        record.name = new_name
        record.updated_at = utcnow()
        logging.info(f"Renamed file {file_id} from '{old_name}' to '{new_name}'.")
        return record

    def move_file(self, file_id: str, new_folder_id: str) -> FileRecord:
        record = self.get_file(file_id)
        self.require_folder(new_folder_id, "Destination folder")
        if record.folder_id == new_folder_id:
            return record
        self._ensure_unique(record.name, new_folder_id, exclude_id=file_id)

        record.folder_id = new_folder_id
        record.updated_at = utcnow()
        logging.info(f"Moved file {file_id} to folder {new_folder_id}.")
        return record

    def update_file(self, file_id: str, changes: dict) -> FileRecord:
        """Applies the `description` and `tags` keys of `changes`; others are ignored."""
        record = self.get_file(file_id)
        if "description" in changes and changes["description"] is not None:
            record.description = str(changes["description"])
        if "tags" in changes and changes["tags"] is not None:
            record.tags = normalize_tags(changes["tags"])
        record.updated_at = utcnow()
        logging.info(f"Updated file {file_id}.")
        return record

    def copy_file(
        self, file_id: str, destination_folder_id: str, actor: Optional[str] = None
    ) -> FileRecord:
        source = self.get_file(file_id)
        self.require_folder(destination_folder_id, "Destination folder")
        now = utcnow()
        clone = source.model_copy(
            deep=True,
            update={
                "id": generate_id(),
                "name": unique_name(
                    source.name, self._names_in(destination_folder_id), keep_extension=True
                ),
                "folder_id": destination_folder_id,
                "downloads": 0,
                "last_downloaded": None,
                "created_at": now,
                "updated_at": now,
                "created_by": actor,
            },
        )
        self.catalog.files[clone.id] = clone
        logging.info(f"Copied file {file_id} to {clone.id} in folder {destination_folder_id}.")
        return clone

    def delete_file(self, file_id: str) -> FileRecord:
        record = self.get_file(file_id)
        del self.catalog.files[file_id]
        release_assets(self.catalog, [record], self.stager)
        logging.info(f"Deleted file '{record.name}' ({file_id}).")
        return record

    def record_download(self, file_id: str) -> FileRecord:
        record = self.get_file(file_id)
        record.downloads += 1
        record.last_downloaded = utcnow()
        return record
