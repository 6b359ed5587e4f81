"""
Image Preview Sync Azure Function
HTTP-Triggered function that generates missing WebP previews and removes
orphaned preview records.

Query parameters:
    quiet: 'true' to answer with an empty 204 instead of the JSON summary
"""
import azure.functions as func
import json
import logging

from app.previewsync import PreviewSyncService, SyncConfig
from app.previewsync.errors import BackendError, ConfigError

logger = logging.getLogger(__name__)


def _json_response(body: dict, status_code: int) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps(body, indent=2),
        status_code=status_code,
        mimetype="application/json"
    )


def build_service() -> PreviewSyncService:
    """Build the sync service from the function app settings."""
    return PreviewSyncService.from_config(SyncConfig.from_env())


def main(req: func.HttpRequest) -> func.HttpResponse:
    """
    HTTP Trigger handler for the preview sync.
    """
    logger.info("Image preview sync triggered.")

    try:
        service = build_service()
    except (ConfigError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        return _json_response({"error": str(e)}, 500)

    try:
        report = service.run()
    except BackendError as e:
        logger.error(f"Sync aborted: {e}")
        return _json_response({"error": str(e)}, 502)

    if req.params.get("quiet", "").lower() in ("1", "true", "yes"):
        return func.HttpResponse(status_code=204)

    return _json_response(report.to_dict(), 200)
