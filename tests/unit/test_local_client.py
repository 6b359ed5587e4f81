"""Unit tests for the filesystem backend."""

import pytest

from app.previewsync.errors import UpstreamFetchError


@pytest.mark.unit
class TestLocalBackendClient:
    """Test LocalBackendClient."""

    def test_documents_are_paged_by_id(self, backend) -> None:
        for doc_id in ("c", "a", "b"):
            backend.put_document("db", "col", {"prompt": doc_id}, document_id=doc_id)
        assert [d["$id"] for d in backend.list_documents("db", "col", 2)] == ["a", "b"]
        assert [d["$id"] for d in backend.list_documents("db", "col", 2, cursor="b")] == ["c"]

    def test_missing_collection_is_empty(self, backend) -> None:
        assert backend.list_documents("db", "nothing", 10) == []

    def test_create_document_generates_id(self, backend) -> None:
        doc = backend.create_document("db", "col", {"prompt": "cat"})
        assert doc["$id"]
        assert doc["$createdAt"]
        assert backend.list_documents("db", "col", 10) == [doc]

    def test_files(self, backend) -> None:
        file_id = backend.upload_file("bucket", "a.png", b"data", "image/png")
        assert backend.file_exists("bucket", file_id)
        assert backend.get_file("bucket", file_id) == b"data"
        listed = backend.list_files("bucket", 10)
        assert [(f["$id"], f["name"]) for f in listed] == [(file_id, "a.png")]

    def test_missing_file(self, backend) -> None:
        assert not backend.file_exists("bucket", "nope")
        assert not backend.file_exists("bucket", "")
        with pytest.raises(UpstreamFetchError):
            backend.get_file("bucket", "nope")

    def test_deletes(self, backend) -> None:
        doc = backend.put_document("db", "col", {}, document_id="d")
        file_id = backend.put_file("bucket", "a.png", b"data")
        backend.delete_document("db", "col", doc["$id"])
        backend.delete_file("bucket", file_id)
        assert backend.list_documents("db", "col", 10) == []
        assert not backend.file_exists("bucket", file_id)

        # Already gone
        backend.delete_document("db", "col", doc["$id"])
        backend.delete_file("bucket", file_id)

    def test_delete_file_without_id_keeps_bucket(self, backend) -> None:
        file_id = backend.put_file("bucket", "a.png", b"data")
        backend.delete_file("bucket", "")
        assert backend.file_exists("bucket", file_id)
