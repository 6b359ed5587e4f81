"""Shared fixtures for PreviewSync tests."""

import io

import pytest
from PIL import Image

from app.previewsync.clients.local import LocalBackendClient
from app.previewsync.config import BACKEND_LOCAL, SyncConfig
from app.previewsync.sync import PreviewSyncService


def make_image(width: int = 960, height: int = 640, mode: str = "RGB", fmt: str = "PNG") -> bytes:
    """Encode a solid test image."""
    color = (200, 30, 30, 128) if mode == "RGBA" else (200, 30, 30)
    if mode in ("P", "L"):
        color = 1
    img = Image.new(mode, (width, height), color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def backend(tmp_path):
    """Filesystem backend rooted in a temporary folder."""
    return LocalBackendClient(tmp_path / "storage")


@pytest.fixture
def config(tmp_path):
    """Collection-mode config with separate buckets and a small page size."""
    return SyncConfig(
        backend=BACKEND_LOCAL,
        local_storage_path=str(tmp_path / "storage"),
        database_id="db",
        source_bucket_id="originals",
        source_collection_id="images",
        target_bucket_id="previews",
        target_collection_id="image_previews",
        page_size=2,
    )


@pytest.fixture
def service(backend, config):
    return PreviewSyncService(backend, config)


@pytest.fixture
def add_source(backend, config):
    """Store an original file and describe it in the source collection."""

    def _add(image_id: str, prompt: str = "cat", model: str = "sdxl", data: bytes = None, with_file: bool = True):
        if with_file:
            backend.put_file(config.source_bucket_id, f"{image_id}.png", data or make_image(), file_id=image_id)
        return backend.put_document(
            config.database_id,
            config.source_collection_id,
            {"imageId": image_id, "prompt": prompt, "model": model, "createdAt": "2025-05-20T10:00:00+00:00"},
        )

    return _add


@pytest.fixture
def previews(backend, config):
    """Read every document of the preview collection."""

    def _list():
        return backend.list_documents(config.database_id, config.target_collection_id, 1000)

    return _list


@pytest.fixture
def image_factory():
    return make_image
