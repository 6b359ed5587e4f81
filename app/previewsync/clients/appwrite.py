"""
Appwrite backend client for PreviewSync.
Talks to the Appwrite REST API (storage buckets and database collections).
"""
import json
import logging
from typing import Any, Dict, List, Optional, Type

import requests

from ..config import SyncConfig
from ..errors import BackendError, UpstreamDeleteError, UpstreamFetchError, UpstreamUploadError
from .base import UNIQUE_ID, BaseBackendClient

logger = logging.getLogger(__name__)


def _query(method: str, attribute: Optional[str] = None, values: Optional[list] = None) -> str:
    """Serialize one Appwrite query in its JSON wire format."""
    query: Dict[str, Any] = {"method": method}
    if attribute is not None:
        query["attribute"] = attribute
    if values is not None:
        query["values"] = values
    return json.dumps(query, separators=(",", ":"))


def page_queries(limit: int, cursor: Optional[str] = None) -> List[str]:
    """Queries for one '$id'-ordered page, starting after cursor."""
    queries = [_query("limit", values=[limit]), _query("orderAsc", attribute="$id")]
    if cursor:
        queries.append(_query("cursorAfter", values=[cursor]))
    return queries


class AppwriteClient(BaseBackendClient):
    """Appwrite REST client using a shared requests session."""

    def __init__(self, config: SyncConfig, session: Optional[requests.Session] = None):
        self.endpoint = config.endpoint.rstrip("/")
        self.timeout = config.request_timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "X-Appwrite-Project": config.project_id,
            "X-Appwrite-Key": config.api_key or "",
        })

    def _request(
        self,
        method: str,
        path: str,
        error_cls: Type[BackendError],
        action: str,
        **kwargs,
    ) -> requests.Response:
        url = f"{self.endpoint}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            details = e.response.text if e.response is not None else str(e)
            raise error_cls(f"Failed to {action}", status_code=status, details=details) from e
        except requests.exceptions.RequestException as e:
            raise error_cls(f"Failed to {action}", details=str(e)) from e

    def list_documents(self, database_id, collection_id, limit, cursor=None):
        response = self._request(
            "GET",
            f"/databases/{database_id}/collections/{collection_id}/documents",
            UpstreamFetchError,
            f"list documents of {collection_id}",
            params={"queries[]": page_queries(limit, cursor)},
        )
        return response.json().get("documents", [])

    def list_files(self, bucket_id, limit, cursor=None):
        response = self._request(
            "GET",
            f"/storage/buckets/{bucket_id}/files",
            UpstreamFetchError,
            f"list files of bucket {bucket_id}",
            params={"queries[]": page_queries(limit, cursor)},
        )
        return response.json().get("files", [])

    def get_file(self, bucket_id, file_id):
        response = self._request(
            "GET",
            f"/storage/buckets/{bucket_id}/files/{file_id}/download",
            UpstreamFetchError,
            f"download file {file_id}",
        )
        return response.content

    def file_exists(self, bucket_id, file_id):
        if not file_id:
            return False
        url = f"{self.endpoint}/storage/buckets/{bucket_id}/files/{file_id}/view"
        try:
            response = self.session.head(url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.warning(f"Existence probe failed for file {file_id}: {e}")
            return False
        return 200 <= response.status_code < 300

    def upload_file(self, bucket_id, filename, data, content_type):
        response = self._request(
            "POST",
            f"/storage/buckets/{bucket_id}/files",
            UpstreamUploadError,
            f"upload {filename}",
            data={"fileId": UNIQUE_ID},
            files={"file": (filename, data, content_type)},
        )
        return response.json()["$id"]

    def create_document(self, database_id, collection_id, data):
        response = self._request(
            "POST",
            f"/databases/{database_id}/collections/{collection_id}/documents",
            UpstreamUploadError,
            f"insert document into {collection_id}",
            json={"documentId": UNIQUE_ID, "data": data},
        )
        return response.json()

    def delete_document(self, database_id, collection_id, document_id):
        try:
            self._request(
                "DELETE",
                f"/databases/{database_id}/collections/{collection_id}/documents/{document_id}",
                UpstreamDeleteError,
                f"delete document {document_id}",
            )
        except UpstreamDeleteError as e:
            if e.status_code != 404:
                raise
            logger.info(f"Document {document_id} already deleted")

    def delete_file(self, bucket_id, file_id):
        try:
            self._request(
                "DELETE",
                f"/storage/buckets/{bucket_id}/files/{file_id}",
                UpstreamDeleteError,
                f"delete file {file_id}",
            )
        except UpstreamDeleteError as e:
            if e.status_code != 404:
                raise
            logger.info(f"File {file_id} already deleted")
