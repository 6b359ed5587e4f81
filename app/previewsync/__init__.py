"""
PreviewSync Module
Generates WebP previews for original images and keeps the preview
collection consistent with them.
"""
from .config import SyncConfig
from .sync import PreviewSyncService, SyncPlan, SyncReport
from .clients import get_client

__all__ = ["PreviewSyncService", "SyncConfig", "SyncPlan", "SyncReport", "get_client"]
