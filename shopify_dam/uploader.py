# uploader.py
import logging
from typing import List, Optional

from .exceptions import ExternalServiceError
from .storage.base import ContentHostClient
from .storage.dto import StagedAsset


class UploadStager:
    """
    Publishes a binary to the content host in three sequential phases:
    stage an upload target, transfer the bytes, finalize a durable asset.
    Every phase is attempted exactly once.
    """

    def __init__(self, host: Optional[ContentHostClient]):
        self.host = host

    def _require_host(self) -> ContentHostClient:
        if self.host is None:
            raise ExternalServiceError("Content host is not configured")
        return self.host

    def upload(self, filename: str, mime_type: str, data: bytes) -> StagedAsset:
        """
        Runs stage -> transfer -> finalize and returns the registered asset.

        A failed finalize after a successful transfer leaves the staged
        upload on the host; nothing is rolled back.
        """
        host = self._require_host()

        # 1. Stage
        try:
            target = host.create_staged_upload(filename, mime_type, len(data))
        except ExternalServiceError:
            raise
        except Exception as e:
            raise ExternalServiceError(f"Staging upload of '{filename}' failed: {e}") from e

        # 2. Transfer
        try:
            host.transfer(target, filename, mime_type, data)
        except ExternalServiceError:
            raise
        except Exception as e:
            raise ExternalServiceError(f"Transfer of '{filename}' failed: {e}") from e

        # 3. Finalize
        try:
            asset = host.create_file(target.resource_url, mime_type, filename)
        except ExternalServiceError:
            logging.error(
                f"Finalizing '{filename}' failed after transfer. Staged resource {target.resource_url} is unreferenced."
            )
            raise
        except Exception as e:
            logging.error(
                f"Finalizing '{filename}' failed after transfer. Staged resource {target.resource_url} is unreferenced."
            )
            raise ExternalServiceError(f"Finalizing '{filename}' failed: {e}") from e

        logging.info(f"Published '{filename}' as asset {asset.external_asset_id}.")
        return asset

    def delete_asset(self, external_asset_id: Optional[str]) -> bool:
        """
        Best-effort removal of an asset from the content host.
        Failures are logged and reported as False, never raised.
        """
        if not external_asset_id:
            return False
        if self.host is None:
            logging.warning(
                f"Content host not configured. Asset {external_asset_id} was not deleted."
            )
            return False
        try:
            self.host.delete_file(external_asset_id)
            return True
        except ExternalServiceError as e:
            logging.error(f"Failed to delete asset {external_asset_id}: {e}")
            return False
        except Exception as e:
            logging.error(f"Unexpected error deleting asset {external_asset_id}: {e}", exc_info=True)
            return False


class PendingAssetDeletions:
    """
    Collects asset deletions requested while a catalog is being mutated and
    issues them through the stager once the catalog has been saved.
    """

    def __init__(self, stager: UploadStager):
        self.stager = stager
        self.asset_ids: List[str] = []

    def delete_asset(self, external_asset_id: Optional[str]) -> bool:
        if not external_asset_id:
            return False
        self.asset_ids.append(external_asset_id)
        return True

    def flush(self) -> int:
        """Deletes the collected assets best-effort; returns how many succeeded."""
        deleted = 0
        for asset_id in self.asset_ids:
            if self.stager.delete_asset(asset_id):
                deleted += 1
        self.asset_ids = []
        return deleted
