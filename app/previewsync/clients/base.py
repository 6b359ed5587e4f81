"""
Base backend client for PreviewSync.
"""
from typing import Any, Dict, List, Optional

# Sentinel asking the backend to generate a new identifier
UNIQUE_ID = "unique()"


class BaseBackendClient:
    """
    Abstract base class for the storage/database backend.

    Documents and files are plain dicts shaped like Appwrite responses:
    every item carries '$id' and '$createdAt', files also carry 'name'.
    """

    def list_documents(
        self,
        database_id: str,
        collection_id: str,
        limit: int,
        cursor: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Return one page of documents ordered by '$id', starting after cursor.

        Raises:
            UpstreamFetchError: if the page could not be fetched
        """
        raise NotImplementedError("Subclasses must implement list_documents")

    def list_files(self, bucket_id: str, limit: int, cursor: Optional[str] = None) -> List[Dict[str, Any]]:
        """Return one page of file descriptors ordered by '$id', starting after cursor."""
        raise NotImplementedError("Subclasses must implement list_files")

    def get_file(self, bucket_id: str, file_id: str) -> bytes:
        """Download a stored file. Raises UpstreamFetchError."""
        raise NotImplementedError("Subclasses must implement get_file")

    def file_exists(self, bucket_id: str, file_id: str) -> bool:
        """Probe a stored file without downloading it."""
        raise NotImplementedError("Subclasses must implement file_exists")

    def upload_file(self, bucket_id: str, filename: str, data: bytes, content_type: str) -> str:
        """Store a new file and return its generated id. Raises UpstreamUploadError."""
        raise NotImplementedError("Subclasses must implement upload_file")

    def create_document(self, database_id: str, collection_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a document with a generated id. Raises UpstreamUploadError."""
        raise NotImplementedError("Subclasses must implement create_document")

    def delete_document(self, database_id: str, collection_id: str, document_id: str) -> None:
        """Delete a document. Missing documents are ignored. Raises UpstreamDeleteError."""
        raise NotImplementedError("Subclasses must implement delete_document")

    def delete_file(self, bucket_id: str, file_id: str) -> None:
        """Delete a stored file. Missing files are ignored. Raises UpstreamDeleteError."""
        raise NotImplementedError("Subclasses must implement delete_file")
