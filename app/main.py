import os
import logging
import uuid
from fastapi import FastAPI, HTTPException, Depends, Header, Query, BackgroundTasks
from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional
from .previewsync import PreviewSyncService, SyncConfig
from .previewsync.errors import BackendError, ConfigError

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Image Preview Sync",
    description="Generates WebP previews for original images and keeps preview records consistent",
    version="1.0.0"
)

# Security Configuration
API_KEY = os.getenv("API_KEY")


def get_api_key(
    api_key_header: str = Header(None, alias="X-API-Key"),
    api_key_query: str = Query(None, alias="api_key")
):
    """
    Validate API Key from Header or Query Parameter.
    """
    if not API_KEY:
        return True  # Open if no key configured (dev mode)

    key = api_key_header or api_key_query
    if key != API_KEY:
        raise HTTPException(status_code=403, detail="Invalid API Key")
    return key


def get_config() -> SyncConfig:
    try:
        return SyncConfig.from_env()
    except ConfigError as e:
        raise HTTPException(status_code=500, detail=str(e))


def get_sync_service(config: SyncConfig = Depends(get_config)) -> PreviewSyncService:
    try:
        return PreviewSyncService.from_config(config)
    except (ConfigError, ValueError) as e:
        logger.error(f"Cannot build sync service: {e}")
        raise HTTPException(status_code=500, detail=str(e))


# =============================================================================
# Models
# =============================================================================

class SyncTotals(BaseModel):
    source: int
    target: int


class SyncItem(BaseModel):
    """Outcome for one original image."""
    model_config = ConfigDict(populate_by_name=True)

    image_id: str = Field(alias="imageId")
    status: str
    preview_image_id: Optional[str] = Field(default=None, alias="previewImageId")
    error: Optional[str] = None


class SyncSummaryResponse(BaseModel):
    """Counts from a sync run."""
    model_config = ConfigDict(populate_by_name=True)

    converted: int
    skipped: int
    cleaned: int
    already_processed: int = Field(alias="alreadyProcessed")
    payload_too_large: int = Field(alias="payloadTooLarge")
    failed_inserts: int = Field(alias="failedInserts")
    failed_deletes: int = Field(alias="failedDeletes")
    totals: SyncTotals
    items: List[SyncItem] = []


class SyncPlanResponse(BaseModel):
    """What a run would do, without doing it."""
    model_config = ConfigDict(populate_by_name=True)

    to_process: List[str] = Field(alias="toProcess")
    to_clean: List[str] = Field(alias="toClean")
    already_processed: List[str] = Field(alias="alreadyProcessed")
    totals: SyncTotals


class SyncJobResponse(BaseModel):
    job_id: str
    status: str
    summary: Optional[SyncSummaryResponse] = None
    error: Optional[str] = None


# Store for tracking background sync jobs
sync_jobs: Dict[str, dict] = {}


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/")
def read_root(config: SyncConfig = Depends(get_config)):
    """
    Service information.
    """
    return {
        "service": "image-preview-sync",
        "backend": config.backend,
        "source_mode": config.source_mode,
        "configured": config.is_configured(),
    }


@app.get("/sync/config", tags=["PreviewSync"])
def get_sync_config(
    auth: str = Depends(get_api_key),
    config: SyncConfig = Depends(get_config)
):
    """
    Show the effective configuration and which required variables are missing.
    The API key itself is never returned.

    Requires API Key authentication.
    """
    return {
        "backend": config.backend,
        "endpoint": config.endpoint,
        "project_id": config.project_id,
        "database_id": config.database_id,
        "source_mode": config.source_mode,
        "source_bucket_id": config.source_bucket_id,
        "source_collection_id": config.source_collection_id,
        "target_bucket_id": config.target_bucket_id,
        "target_collection_id": config.target_collection_id,
        "preview": {
            "width": config.preview_width,
            "quality": config.preview_quality,
            "format": "webp",
        },
        "page_size": config.page_size,
        "max_payload_kb": config.max_payload_kb,
        "configured": config.is_configured(),
        "missing": config.missing_settings(),
    }


@app.get("/sync/plan", response_model=SyncPlanResponse, tags=["PreviewSync"])
def get_sync_plan(
    auth: str = Depends(get_api_key),
    service: PreviewSyncService = Depends(get_sync_service)
):
    """
    Dry run: list originals and previews and report what a sync would change.

    Requires API Key authentication.
    """
    try:
        return SyncPlanResponse.model_validate(service.plan().to_dict())
    except BackendError as e:
        logger.error(f"Plan failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))


@app.post("/sync", response_model=SyncSummaryResponse, tags=["PreviewSync"])
def run_sync(
    auth: str = Depends(get_api_key),
    service: PreviewSyncService = Depends(get_sync_service)
):
    """
    Execute a sync synchronously and return its summary.

    This may take time depending on the number of images to convert.
    Requires API Key authentication.
    """
    try:
        report = service.run()
    except BackendError as e:
        logger.error(f"Sync aborted: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    return SyncSummaryResponse.model_validate(report.to_dict())


@app.post("/sync/async", tags=["PreviewSync"])
async def run_sync_async(
    background_tasks: BackgroundTasks,
    auth: str = Depends(get_api_key),
    service: PreviewSyncService = Depends(get_sync_service)
):
    """
    Execute a sync in the background.

    Returns immediately with a job ID. Use GET /sync/status/{job_id} to
    check the status of the operation.

    Requires API Key authentication.
    """
    job_id = str(uuid.uuid4())
    sync_jobs[job_id] = {"job_id": job_id, "status": "running", "summary": None, "error": None}

    def run_sync_job():
        try:
            report = service.run()
            sync_jobs[job_id]["summary"] = report.to_dict()
            sync_jobs[job_id]["status"] = "completed"
        except Exception as e:
            logger.error(f"Background sync {job_id} failed: {e}")
            sync_jobs[job_id]["status"] = "failed"
            sync_jobs[job_id]["error"] = str(e)

    background_tasks.add_task(run_sync_job)

    return {
        "job_id": job_id,
        "status": "started",
        "message": "Sync job started. Use GET /sync/status/{job_id} to check progress."
    }


@app.get("/sync/status/{job_id}", response_model=SyncJobResponse, tags=["PreviewSync"])
def get_sync_status(job_id: str):
    """
    Get the status of a background sync job.
    """
    if job_id not in sync_jobs:
        raise HTTPException(status_code=404, detail="Job not found")
    return SyncJobResponse.model_validate(sync_jobs[job_id])
