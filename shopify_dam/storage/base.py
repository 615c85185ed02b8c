# storage/base.py
from abc import ABC, abstractmethod
from .dto import Catalog, StagedAsset, StagedTarget


class MetadataStore(ABC):
    """
    Abstract base class for catalog persistence.
    The whole catalog is read and written as one record; callers load it,
    mutate an in-memory copy and save the full catalog back.
    """

    @abstractmethod
    def load(self) -> Catalog:
        """
        Loads the catalog, creating it with a single root folder on first access.

        :return: A fresh, independently mutable Catalog.
        """
        pass

    @abstractmethod
    def save(self, catalog: Catalog) -> None:
        """
        Replaces the stored catalog.

        :param catalog: The catalog as loaded and mutated by the caller.
        :raises ConflictError: If the stored catalog changed since it was loaded.
        """
        pass


class ContentHostClient(ABC):
    """
    Abstract base class for the remote content host that stores the binaries.
    Defines the staged-upload protocol the UploadStager drives.
    """

    @abstractmethod
    def create_staged_upload(
        self, filename: str, mime_type: str, size: int
    ) -> StagedTarget:
        """
        Requests a one-time upload target for a single file.

        :param filename: Name the file is uploaded under.
        :param mime_type: MIME type of the payload.
        :param size: Payload size in bytes.
        :return: Where and how to transfer the bytes.
        """
        pass

    @abstractmethod
    def transfer(
        self, target: StagedTarget, filename: str, mime_type: str, data: bytes
    ) -> None:
        """
        Performs the multipart upload of the raw bytes to the staged target.

        :param target: The target returned by create_staged_upload.
        :param filename: Name of the file part.
        :param mime_type: MIME type of the file part.
        :param data: The raw bytes.
        """
        pass

    @abstractmethod
    def create_file(
        self, resource_url: str, mime_type: str, filename: str
    ) -> StagedAsset:
        """
        Registers a durable asset from a completed transfer.

        :param resource_url: The staged resource reference.
        :param mime_type: MIME type of the payload.
        :param filename: Name of the file.
        :return: The external asset id and its public URL.
        """
        pass

    @abstractmethod
    def delete_file(self, external_asset_id: str) -> None:
        """
        Removes an asset from the content host.

        :param external_asset_id: The id returned by create_file.
        """
        pass
