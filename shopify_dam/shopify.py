# shopify.py
import logging
from typing import Any, Dict, Optional

import requests

from .exceptions import ExternalServiceError
from .storage.base import ContentHostClient
from .storage.dto import StagedAsset, StagedTarget

STAGED_UPLOADS_CREATE = """
mutation stagedUploadsCreate($input: [StagedUploadInput!]!) {
  stagedUploadsCreate(input: $input) {
    stagedTargets {
      url
      resourceUrl
      parameters {
        name
        value
      }
    }
    userErrors {
      field
      message
    }
  }
}
"""

FILE_CREATE = """
mutation fileCreate($files: [FileCreateInput!]!) {
  fileCreate(files: $files) {
    files {
      ... on MediaImage {
        id
        image {
          url
        }
      }
      ... on Video {
        id
        sources {
          url
        }
        preview {
          image {
            url
          }
        }
      }
      ... on GenericFile {
        id
        url
      }
    }
    userErrors {
      field
      message
    }
  }
}
"""

FILE_DELETE = """
mutation fileDelete($fileIds: [ID!]!) {
  fileDelete(fileIds: $fileIds) {
    deletedFileIds
    userErrors {
      field
      message
    }
  }
}
"""


def shopify_content_type(mime_type: str) -> str:
    """Maps a MIME type to the content type the Files API expects."""
    mime_type = (mime_type or "").lower()
    if mime_type.startswith("image/"):
        return "IMAGE"
    if mime_type.startswith("video/"):
        return "VIDEO"
    return "FILE"


class ShopifyFilesClient(ContentHostClient):
    """
    Client for the Shopify Admin GraphQL Files API, implementing the ContentHostClient interface.
    """

    def __init__(
        self,
        store_domain: str,
        access_token: str,
        api_version: str = "2024-01",
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        if not store_domain or not access_token:
            raise ValueError("Shopify store domain and access token are required")
        self.endpoint = f"https://{store_domain}/admin/api/{api_version}/graphql.json"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Content-Type": "application/json",
                "X-Shopify-Access-Token": access_token,
            }
        )
        logging.info(f"Shopify Files client initialized for {store_domain}.")

    def graphql(
        self, query: str, variables: Dict[str, Any], operation: str
    ) -> Dict[str, Any]:
        """
        Executes a GraphQL mutation and returns the payload of `operation`.

        Raises:
            ExternalServiceError: On transport failures, non-2xx responses,
                top-level GraphQL errors or user errors of the operation.
        """
        try:
            response = self.session.post(
                self.endpoint,
                json={"query": query, "variables": variables},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logging.error(f"Shopify {operation} request failed: {e}")
            raise ExternalServiceError(f"Shopify {operation} request failed: {e}") from e

        if not response.ok:
            logging.error(
                f"Shopify {operation} returned HTTP {response.status_code}: {response.text}"
            )
            raise ExternalServiceError(
                f"Shopify API error during {operation}: HTTP {response.status_code}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ExternalServiceError(
                f"Shopify returned an invalid response for {operation}"
            ) from e

        if body.get("errors"):
            messages = "; ".join(
                str(err.get("message", err)) if isinstance(err, dict) else str(err)
                for err in body["errors"]
            )
            raise ExternalServiceError(f"Shopify {operation} failed: {messages}")

        payload = (body.get("data") or {}).get(operation)
        if payload is None:
            raise ExternalServiceError(f"Shopify {operation} returned no data")

        user_errors = payload.get("userErrors") or []
        if user_errors:
            messages = "; ".join(err.get("message", "") for err in user_errors)
            raise ExternalServiceError(f"Shopify {operation} rejected the request: {messages}")

        return payload

    def create_staged_upload(
        self, filename: str, mime_type: str, size: int
    ) -> StagedTarget:
        payload = self.graphql(
            STAGED_UPLOADS_CREATE,
            {
                "input": [
                    {
                        "filename": filename,
                        "mimeType": mime_type,
                        "httpMethod": "POST",
                        "resource": shopify_content_type(mime_type),
                        "fileSize": str(size),
                    }
                ]
            },
            "stagedUploadsCreate",
        )
        targets = payload.get("stagedTargets") or []
        if not targets:
            raise ExternalServiceError("Shopify did not return a staged upload target")

        target = targets[0]
        logging.info(f"Staged upload created for '{filename}'.")
        return StagedTarget(
            upload_url=target["url"],
            resource_url=target["resourceUrl"],
            parameters=[
                {"name": p["name"], "value": p["value"]}
                for p in target.get("parameters") or []
            ],
        )

    def transfer(
        self, target: StagedTarget, filename: str, mime_type: str, data: bytes
    ) -> None:
        # The staged URL is pre-signed; it must not receive the admin token.
        form = {p["name"]: p["value"] for p in target.parameters}
        try:
            logging.info(f"Uploading {len(data)} bytes of '{filename}' to the staged target...")
            response = requests.post(
                target.upload_url,
                data=form,
                files={"file": (filename, data, mime_type)},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logging.error(f"Upload of '{filename}' to staged target failed: {e}")
            raise ExternalServiceError(f"Upload to staged target failed: {e}") from e

        if not response.ok:
            logging.error(
                f"Staged target rejected '{filename}' with HTTP {response.status_code}: {response.text}"
            )
            raise ExternalServiceError(
                f"Upload to staged target failed: HTTP {response.status_code}"
            )

    def create_file(
        self, resource_url: str, mime_type: str, filename: str
    ) -> StagedAsset:
        payload = self.graphql(
            FILE_CREATE,
            {
                "files": [
                    {
                        "originalSource": resource_url,
                        "contentType": shopify_content_type(mime_type),
                    }
                ]
            },
            "fileCreate",
        )
        files = payload.get("files") or []
        if not files or not files[0] or not files[0].get("id"):
            raise ExternalServiceError(f"Shopify did not create a file for '{filename}'")

        created = files[0]
        url = None
        if (created.get("image") or {}).get("url"):
            url = created["image"]["url"]
        elif created.get("sources") and created["sources"][0].get("url"):
            url = created["sources"][0]["url"]
        elif created.get("url"):
            url = created["url"]

        preview_url = ((created.get("preview") or {}).get("image") or {}).get("url")
        if preview_url is None and shopify_content_type(mime_type) == "IMAGE":
            preview_url = url

        logging.info(f"Shopify file {created['id']} created for '{filename}'.")
        return StagedAsset(
            external_asset_id=created["id"], url=url, preview_url=preview_url
        )

    def delete_file(self, external_asset_id: str) -> None:
        logging.info(f"Deleting Shopify file {external_asset_id}...")
        self.graphql(FILE_DELETE, {"fileIds": [external_asset_id]}, "fileDelete")
