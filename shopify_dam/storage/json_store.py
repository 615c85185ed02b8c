# storage/json_store.py
import logging
import os
import tempfile
import threading
from pathlib import Path

from pydantic import ValidationError as SchemaError

from ..exceptions import ConflictError
from .base import MetadataStore
from .dto import Catalog, ROOT_FOLDER_ID


class JsonFileMetadataStore(MetadataStore):
    """
    Keeps the catalog as one JSON document on the local filesystem.
    Writes go to a temporary file that is renamed over the document, so a
    reader never sees a partially written catalog.
    """

    def __init__(self, path: Path, root_name: str = "My Files"):
        self.path = Path(path)
        self.root_name = root_name
        self._lock = threading.Lock()
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _read(self) -> Catalog | None:
        if not self.path.is_file():
            return None
        try:
            return Catalog.model_validate_json(self.path.read_text(encoding="utf-8"))
        except SchemaError as e:
            logging.error(f"Catalog document {self.path} is corrupted: {e}")
            raise

    def _write(self, catalog: Catalog) -> None:
        fd, tmp_path = tempfile.mkstemp(
            dir=self.path.parent, prefix=".tmp_", suffix=self.path.suffix
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(catalog.model_dump_json(by_alias=True, indent=2))
            Path(tmp_path).replace(self.path)
        except Exception:
            tmp = Path(tmp_path)
            if tmp.exists():
                tmp.unlink()
            raise

    def load(self) -> Catalog:
        with self._lock:
            catalog = self._read()
            if catalog is None:
                logging.info(f"No catalog found at {self.path}. Creating a new one.")
                catalog = Catalog.new(self.root_name)
                self._write(catalog)
            elif ROOT_FOLDER_ID not in catalog.folders:
                logging.warning(f"Catalog at {self.path} has no root folder. Restoring it.")
                restored = Catalog.new(self.root_name)
                catalog.folders[ROOT_FOLDER_ID] = restored.folders[ROOT_FOLDER_ID]
            return catalog

    def save(self, catalog: Catalog) -> None:
        with self._lock:
            current = self._read()
            stored_version = current.version if current is not None else 0
            if stored_version != catalog.version:
                raise ConflictError(
                    "The asset library was modified by another request. Reload and try again."
                )
            catalog.version += 1
            self._write(catalog)
            logging.debug(f"Saved catalog version {catalog.version} to {self.path}")
