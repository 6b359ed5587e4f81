"""
PreviewSync Service
Keeps the preview collection in step with the original images: generates
missing WebP previews and removes preview records that no longer resolve.
"""
import json
import logging
from dataclasses import dataclass, field, replace
from functools import reduce
from itertools import chain
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import unquote

from .clients import BaseBackendClient, get_client
from .config import SyncConfig
from .errors import BackendError
from .pagination import CursorPager
from .preview import PREVIEW_CONTENT_TYPE, preview_filename, render_preview

logger = logging.getLogger(__name__)

# Valid image extensions for originals listed straight from a bucket
VALID_IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.webp'}

# Item outcome statuses
CONVERTED = "converted"
SKIPPED = "skipped"
ALREADY_PROCESSED = "already_processed"
PAYLOAD_TOO_LARGE = "payload_too_large"
FAILED_INSERT = "failed_insert"

# insert_preview_record results
INSERTED = "inserted"
INSERT_FAILED = "failed"


@dataclass
class SourceImage:
    """An original image, read-only to the sync."""
    image_id: str
    prompt: str = ""
    model: str = ""
    created_at: str = ""
    tags: List[str] = field(default_factory=list)

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "SourceImage":
        return cls(
            image_id=doc.get("imageId") or doc["$id"],
            prompt=doc.get("prompt", ""),
            model=doc.get("model", ""),
            created_at=doc.get("createdAt") or doc.get("$createdAt", ""),
            tags=list(doc.get("tags") or []),
        )

    @classmethod
    def from_file(cls, file: Dict[str, Any]) -> "SourceImage":
        """
        Describe a bucket file named '<url-encoded prompt>_<model>_<tag+tag>.<ext>'.
        """
        name = file.get("name", "")
        suffix = Path(name).suffix
        stem = name[: -len(suffix)] if suffix else name
        prompt_raw, _, rest = stem.partition("_")
        model, _, tag_part = rest.partition("_")
        return cls(
            image_id=file["$id"],
            prompt=unquote(prompt_raw),
            model=model,
            created_at=file.get("$createdAt", ""),
            tags=[tag for tag in tag_part.split("+") if tag],
        )


@dataclass
class PreviewRecord:
    """A preview document linking an original to its WebP preview."""
    id: str
    original_image_id: str
    preview_image_id: str
    prompt: str = ""
    model: str = ""
    created_at: str = ""
    tags: List[str] = field(default_factory=list)

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "PreviewRecord":
        return cls(
            id=doc["$id"],
            # fullImageId is how the first revisions named the link
            original_image_id=doc.get("originalImageId") or doc.get("fullImageId") or "",
            preview_image_id=doc.get("previewImageId") or "",
            prompt=doc.get("prompt", ""),
            model=doc.get("model", ""),
            created_at=doc.get("createdAt", ""),
            tags=list(doc.get("tags") or []),
        )


@dataclass
class SyncPlan:
    """Result of diffing originals against previews."""
    to_process: List[SourceImage] = field(default_factory=list)
    to_clean: List[PreviewRecord] = field(default_factory=list)
    already_processed: List[SourceImage] = field(default_factory=list)
    total_source: int = 0
    total_target: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "toProcess": [s.image_id for s in self.to_process],
            "toClean": [p.id for p in self.to_clean],
            "alreadyProcessed": [s.image_id for s in self.already_processed],
            "totals": {"source": self.total_source, "target": self.total_target},
        }


@dataclass(frozen=True)
class ItemOutcome:
    """What happened to one original during a run."""
    image_id: str
    status: str
    preview_image_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"imageId": self.image_id, "status": self.status}
        if self.preview_image_id:
            data["previewImageId"] = self.preview_image_id
        if self.error:
            data["error"] = self.error
        return data


_COUNTERS = {
    CONVERTED: "converted",
    SKIPPED: "skipped",
    ALREADY_PROCESSED: "already_processed",
    PAYLOAD_TOO_LARGE: "payload_too_large",
    FAILED_INSERT: "failed_inserts",
}


@dataclass(frozen=True)
class SyncReport:
    """Summary of a run, accumulated one outcome at a time."""
    converted: int = 0
    skipped: int = 0
    cleaned: int = 0
    already_processed: int = 0
    payload_too_large: int = 0
    failed_inserts: int = 0
    failed_deletes: int = 0
    total_source: int = 0
    total_target: int = 0
    items: Tuple[ItemOutcome, ...] = ()

    def record(self, outcome: ItemOutcome) -> "SyncReport":
        counter = _COUNTERS[outcome.status]
        return replace(
            self,
            items=self.items + (outcome,),
            **{counter: getattr(self, counter) + 1},
        )

    def record_cleanup(self, deleted: bool) -> "SyncReport":
        if deleted:
            return replace(self, cleaned=self.cleaned + 1)
        return replace(self, failed_deletes=self.failed_deletes + 1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "converted": self.converted,
            "skipped": self.skipped,
            "cleaned": self.cleaned,
            "alreadyProcessed": self.already_processed,
            "payloadTooLarge": self.payload_too_large,
            "failedInserts": self.failed_inserts,
            "failedDeletes": self.failed_deletes,
            "totals": {"source": self.total_source, "target": self.total_target},
            "items": [item.to_dict() for item in self.items],
        }


class PreviewSyncService:
    """
    Service for synchronizing image previews.
    Generates a WebP preview for every original lacking one and deletes
    preview records whose original or preview file is gone.

    Runs sequentially; concurrent runs against the same backend are not
    coordinated and may both create a preview for the same original.
    """

    def __init__(self, client: BaseBackendClient, config: SyncConfig):
        """
        Initialize PreviewSyncService.

        Args:
            client: Backend client for documents and files
            config: SyncConfig naming buckets, collections and preview settings
        """
        self.client = client
        self.config = config

    @classmethod
    def from_config(cls, config: SyncConfig) -> "PreviewSyncService":
        return cls(get_client(config), config)

    # Listing

    def list_source_records(self) -> Iterable[SourceImage]:
        """
        List the originals, from the source collection when one is configured,
        otherwise from the image files of the source bucket.
        """
        cfg = self.config
        if cfg.source_mode == "collection":
            pager = CursorPager(
                lambda limit, cursor: self.client.list_documents(cfg.database_id, cfg.source_collection_id, limit, cursor),
                cfg.page_size,
                name=f"collection {cfg.source_collection_id}",
            )
            return (SourceImage.from_document(doc) for doc in pager)

        pager = CursorPager(
            lambda limit, cursor: self.client.list_files(cfg.source_bucket_id, limit, cursor),
            cfg.page_size,
            name=f"bucket {cfg.source_bucket_id}",
        )
        return (SourceImage.from_file(f) for f in pager if self._is_original_file(f))

    def _is_original_file(self, file: Dict[str, Any]) -> bool:
        name = file.get("name", "")
        if Path(name).suffix.lower() not in VALID_IMAGE_EXTENSIONS:
            return False
        # Previews share the bucket with their originals in the default setup
        if self.config.source_bucket_id == self.config.target_bucket_id:
            return not (name.startswith("preview-") and name.endswith(".webp"))
        return True

    def list_preview_records(self) -> Iterable[PreviewRecord]:
        cfg = self.config
        pager = CursorPager(
            lambda limit, cursor: self.client.list_documents(cfg.database_id, cfg.target_collection_id, limit, cursor),
            cfg.page_size,
            name=f"collection {cfg.target_collection_id}",
        )
        return (PreviewRecord.from_document(doc) for doc in pager)

    # Diff

    def diff(self, source_records: List[SourceImage], preview_records: List[PreviewRecord]) -> SyncPlan:
        """
        Split originals into work to do and previews into records to remove.

        A preview is kept only if its original is listed and its preview file
        passes the existence probe. Originals without a kept preview are
        processed.
        """
        unique_sources: Dict[str, SourceImage] = {}
        for source in source_records:
            unique_sources.setdefault(source.image_id, source)

        verified = set()
        to_clean = []
        for record in preview_records:
            if record.original_image_id not in unique_sources:
                logger.info(f"Preview {record.id} references missing original {record.original_image_id}")
                to_clean.append(record)
            elif not self.client.file_exists(self.config.target_bucket_id, record.preview_image_id):
                logger.info(f"Preview {record.id} references missing file {record.preview_image_id or '<none>'}")
                to_clean.append(record)
            else:
                verified.add(record.original_image_id)

        plan = SyncPlan(
            to_clean=to_clean,
            total_source=len(source_records),
            total_target=len(preview_records),
        )
        for image_id, source in unique_sources.items():
            if image_id in verified:
                plan.already_processed.append(source)
            else:
                plan.to_process.append(source)
        return plan

    def plan(self) -> SyncPlan:
        """Compute what a run would do without changing anything."""
        return self.diff(list(self.list_source_records()), list(self.list_preview_records()))

    # Per-record work

    def generate_preview(self, source_image_id: str) -> str:
        """
        Download an original, render its preview and upload it.

        Returns:
            The id of the uploaded preview file

        Raises:
            UpstreamFetchError: download failed
            EncodeError: resize/encode failed
            UpstreamUploadError: upload failed
        """
        cfg = self.config
        original = self.client.get_file(cfg.source_bucket_id, source_image_id)
        webp = render_preview(original, cfg.preview_width, cfg.preview_quality)
        preview_id = self.client.upload_file(
            cfg.target_bucket_id,
            preview_filename(source_image_id),
            webp,
            PREVIEW_CONTENT_TYPE,
        )
        logger.info(f"Created preview {preview_id} for {source_image_id} ({len(original)} -> {len(webp)} bytes)")
        return preview_id

    def insert_preview_record(self, data: Dict[str, Any]) -> str:
        """
        Insert preview metadata unless its serialized size exceeds the limit.

        Returns:
            INSERTED, PAYLOAD_TOO_LARGE or INSERT_FAILED
        """
        image_id = data.get("originalImageId")
        try:
            size = len(json.dumps(data).encode("utf-8"))
        except (TypeError, ValueError) as e:
            logger.error(f"Could not serialize metadata for {image_id}: {e}")
            return INSERT_FAILED

        if size > self.config.max_payload_bytes:
            logger.warning(
                f"Metadata for {image_id} is {size / 1024:.0f} KB, over the "
                f"{self.config.max_payload_kb} KB limit; not inserting"
            )
            return PAYLOAD_TOO_LARGE

        try:
            self.client.create_document(self.config.database_id, self.config.target_collection_id, data)
        except BackendError as e:
            logger.error(f"Failed to insert preview record for {image_id}: {e}")
            return INSERT_FAILED
        return INSERTED

    def delete_orphan(self, record: PreviewRecord) -> bool:
        """
        Delete a preview record, then its preview file. Both steps are
        best-effort and not retried.

        Returns:
            True if the record itself was deleted
        """
        cfg = self.config
        deleted = False
        try:
            self.client.delete_document(cfg.database_id, cfg.target_collection_id, record.id)
            deleted = True
            logger.info(f"Deleted orphan preview record {record.id}")
        except BackendError as e:
            logger.error(f"Failed to delete preview record {record.id}: {e}")

        if record.preview_image_id:
            try:
                self.client.delete_file(cfg.target_bucket_id, record.preview_image_id)
            except BackendError as e:
                logger.error(f"Failed to delete preview file {record.preview_image_id}: {e}")
        return deleted

    def _discard_preview(self, preview_id: str) -> None:
        try:
            self.client.delete_file(self.config.target_bucket_id, preview_id)
        except BackendError as e:
            logger.error(f"Failed to remove unrecorded preview file {preview_id}: {e}")

    def build_record_data(self, source: SourceImage, preview_id: str) -> Dict[str, Any]:
        data = {
            "originalImageId": source.image_id,
            "previewImageId": preview_id,
            "prompt": source.prompt,
            "model": source.model,
            "createdAt": source.created_at,
            "tags": source.tags,
        }
        return data

    def process_record(self, source: SourceImage) -> ItemOutcome:
        """Generate and record the preview of one original. Never raises."""
        try:
            preview_id = self.generate_preview(source.image_id)
        except Exception as e:
            logger.error(f"Error processing {source.image_id}: {type(e).__name__}: {e}")
            return ItemOutcome(source.image_id, SKIPPED, error=str(e))

        result = self.insert_preview_record(self.build_record_data(source, preview_id))
        if result == INSERTED:
            logger.info(f"Inserted preview record for {source.image_id}")
            return ItemOutcome(source.image_id, CONVERTED, preview_image_id=preview_id)

        self._discard_preview(preview_id)
        if result == PAYLOAD_TOO_LARGE:
            return ItemOutcome(source.image_id, PAYLOAD_TOO_LARGE, error="metadata payload too large")
        return ItemOutcome(source.image_id, FAILED_INSERT, error="metadata insert failed")

    # Orchestration

    def run(self) -> SyncReport:
        """
        Execute the full sync: list, diff, clean orphans, process originals.

        Listing failures propagate; everything per record is folded into the
        returned SyncReport.
        """
        logger.info("Starting image preview sync")
        source_records = list(self.list_source_records())
        preview_records = list(self.list_preview_records())
        plan = self.diff(source_records, preview_records)

        logger.info(
            f"Originals: {plan.total_source}, previews: {plan.total_target}, "
            f"to process: {len(plan.to_process)}, to clean: {len(plan.to_clean)}"
        )

        report = SyncReport(total_source=plan.total_source, total_target=plan.total_target)
        for record in plan.to_clean:
            report = report.record_cleanup(self.delete_orphan(record))

        outcomes = chain(
            (ItemOutcome(s.image_id, ALREADY_PROCESSED) for s in plan.already_processed),
            (self.process_record(s) for s in plan.to_process),
        )
        report = reduce(SyncReport.record, outcomes, report)

        logger.info(
            f"Sync complete: converted={report.converted}, skipped={report.skipped}, "
            f"cleaned={report.cleaned}, already_processed={report.already_processed}, "
            f"payload_too_large={report.payload_too_large}, failed_inserts={report.failed_inserts}"
        )
        return report
