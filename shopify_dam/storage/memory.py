# storage/memory.py
import logging
import threading

from ..exceptions import ConflictError
from .base import MetadataStore
from .dto import Catalog


class InMemoryMetadataStore(MetadataStore):
    """
    Key-value flavoured store that keeps the serialized catalog in memory.
    Every load returns an independent copy, so callers never share state.
    """

    def __init__(self, root_name: str = "My Files"):
        self.root_name = root_name
        self._document: str | None = None
        self._lock = threading.Lock()

    def load(self) -> Catalog:
        with self._lock:
            if self._document is None:
                logging.info("Initializing in-memory catalog.")
                self._document = Catalog.new(self.root_name).model_dump_json(by_alias=True)
            return Catalog.model_validate_json(self._document)

    def save(self, catalog: Catalog) -> None:
        with self._lock:
            stored_version = (
                Catalog.model_validate_json(self._document).version
                if self._document is not None
                else 0
            )
            if stored_version != catalog.version:
                raise ConflictError(
                    "The asset library was modified by another request. Reload and try again."
                )
            catalog.version += 1
            self._document = catalog.model_dump_json(by_alias=True)
