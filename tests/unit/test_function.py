"""Unit tests for the Azure Function entry point."""

import json
from unittest.mock import MagicMock

import azure.functions as func
import pytest

import functions.preview_sync_function as preview_function
from app.previewsync.errors import ConfigError, UpstreamFetchError
from app.previewsync.sync import PreviewSyncService


def make_request(params=None) -> func.HttpRequest:
    return func.HttpRequest(method="POST", url="/api/preview_sync_function", body=b"", params=params or {})


@pytest.mark.unit
class TestPreviewSyncFunction:
    """Test the HTTP trigger."""

    def test_returns_summary(self, service, add_source, monkeypatch) -> None:
        add_source("A")
        monkeypatch.setattr(preview_function, "build_service", lambda: service)

        response = preview_function.main(make_request())

        assert response.status_code == 200
        assert response.mimetype == "application/json"
        body = json.loads(response.get_body())
        assert (body["converted"], body["cleaned"], body["alreadyProcessed"]) == (1, 0, 0)

    def test_quiet_returns_empty_acknowledgment(self, service, monkeypatch) -> None:
        monkeypatch.setattr(preview_function, "build_service", lambda: service)
        response = preview_function.main(make_request({"quiet": "true"}))
        assert response.status_code == 204
        assert response.get_body() == b""

    def test_configuration_error(self, monkeypatch) -> None:
        def broken():
            raise ConfigError("Missing required environment variables: APPWRITE_API_KEY")

        monkeypatch.setattr(preview_function, "build_service", broken)
        response = preview_function.main(make_request())
        assert response.status_code == 500
        assert "APPWRITE_API_KEY" in json.loads(response.get_body())["error"]

    def test_listing_failure(self, monkeypatch) -> None:
        failing = MagicMock(spec=PreviewSyncService)
        failing.run.side_effect = UpstreamFetchError("Failed to list files", 500)
        monkeypatch.setattr(preview_function, "build_service", lambda: failing)

        response = preview_function.main(make_request())
        assert response.status_code == 502

    def test_build_service_from_environment(self, monkeypatch, tmp_path) -> None:
        monkeypatch.delenv("APPWRITE_API_KEY", raising=False)
        monkeypatch.delenv("APIWRITE_API_KEY", raising=False)
        monkeypatch.setenv("PREVIEW_SYNC_BACKEND", "local")
        monkeypatch.setenv("LOCAL_STORAGE_PATH", str(tmp_path / "store"))
        service = preview_function.build_service()
        assert service.config.backend == "local"
