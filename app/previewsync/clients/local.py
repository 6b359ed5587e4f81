"""
Local filesystem backend for PreviewSync.

Mirrors the Appwrite layout on disk so the sync can run without a server:

    <root>/databases/<database_id>/<collection_id>/<document_id>.json
    <root>/buckets/<bucket_id>/<file_id>/<filename>
"""
import json
import logging
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..errors import UpstreamDeleteError, UpstreamFetchError, UpstreamUploadError
from .base import BaseBackendClient

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex[:20]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _page(items: List[Dict[str, Any]], limit: int, cursor: Optional[str]) -> List[Dict[str, Any]]:
    items = sorted(items, key=lambda item: item["$id"])
    if cursor:
        items = [item for item in items if item["$id"] > cursor]
    return items[:limit]


class LocalBackendClient(BaseBackendClient):
    """Filesystem-backed client used for local development and tests."""

    def __init__(self, root: Union[str, Path] = "local_storage"):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _collection_dir(self, database_id: str, collection_id: str) -> Path:
        return self.root / "databases" / database_id / collection_id

    def _file_dir(self, bucket_id: str, file_id: str) -> Path:
        return self.root / "buckets" / bucket_id / file_id

    def _stored_file(self, bucket_id: str, file_id: str) -> Optional[Path]:
        file_dir = self._file_dir(bucket_id, file_id)
        if not file_dir.is_dir():
            return None
        for path in file_dir.iterdir():
            if path.is_file():
                return path
        return None

    # Seeding helpers

    def put_document(
        self,
        database_id: str,
        collection_id: str,
        data: Dict[str, Any],
        document_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        document = dict(data)
        document["$id"] = document_id or _new_id()
        document.setdefault("$createdAt", _now())
        folder = self._collection_dir(database_id, collection_id)
        folder.mkdir(parents=True, exist_ok=True)
        with open(folder / f"{document['$id']}.json", "w") as f:
            json.dump(document, f)
        return document

    def put_file(self, bucket_id: str, filename: str, data: bytes, file_id: Optional[str] = None) -> str:
        file_id = file_id or _new_id()
        file_dir = self._file_dir(bucket_id, file_id)
        file_dir.mkdir(parents=True, exist_ok=True)
        with open(file_dir / filename, "wb") as f:
            f.write(data)
        return file_id

    # BaseBackendClient

    def list_documents(self, database_id, collection_id, limit, cursor=None):
        folder = self._collection_dir(database_id, collection_id)
        documents = []
        if folder.is_dir():
            for path in folder.glob("*.json"):
                try:
                    with open(path, "r") as f:
                        documents.append(json.load(f))
                except (OSError, ValueError) as e:
                    raise UpstreamFetchError(f"Failed to read document {path.stem}", details=str(e)) from e
        return _page(documents, limit, cursor)

    def list_files(self, bucket_id, limit, cursor=None):
        folder = self.root / "buckets" / bucket_id
        files = []
        if folder.is_dir():
            for file_dir in folder.iterdir():
                stored = self._stored_file(bucket_id, file_dir.name)
                if stored is None:
                    continue
                created = datetime.fromtimestamp(stored.stat().st_mtime, tz=timezone.utc)
                files.append({
                    "$id": file_dir.name,
                    "name": stored.name,
                    "$createdAt": created.isoformat(),
                    "sizeOriginal": stored.stat().st_size,
                })
        return _page(files, limit, cursor)

    def get_file(self, bucket_id, file_id):
        stored = self._stored_file(bucket_id, file_id)
        if stored is None:
            raise UpstreamFetchError(f"Failed to download file {file_id}", status_code=404)
        with open(stored, "rb") as f:
            return f.read()

    def file_exists(self, bucket_id, file_id):
        if not file_id:
            return False
        return self._stored_file(bucket_id, file_id) is not None

    def upload_file(self, bucket_id, filename, data, content_type):
        try:
            return self.put_file(bucket_id, filename, data)
        except OSError as e:
            raise UpstreamUploadError(f"Failed to upload {filename}", details=str(e)) from e

    def create_document(self, database_id, collection_id, data):
        try:
            return self.put_document(database_id, collection_id, data)
        except (OSError, TypeError) as e:
            raise UpstreamUploadError(f"Failed to insert document into {collection_id}", details=str(e)) from e

    def delete_document(self, database_id, collection_id, document_id):
        path = self._collection_dir(database_id, collection_id) / f"{document_id}.json"
        if not path.exists():
            logger.info(f"Document {document_id} already deleted")
            return
        try:
            path.unlink()
        except OSError as e:
            raise UpstreamDeleteError(f"Failed to delete document {document_id}", details=str(e)) from e

    def delete_file(self, bucket_id, file_id):
        file_dir = self._file_dir(bucket_id, file_id)
        if not file_id or not file_dir.exists():
            logger.info(f"File {file_id} already deleted")
            return
        try:
            shutil.rmtree(file_dir)
        except OSError as e:
            raise UpstreamDeleteError(f"Failed to delete file {file_id}", details=str(e)) from e
