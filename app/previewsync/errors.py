"""
Error types for PreviewSync.
"""
from typing import Optional


class PreviewSyncError(Exception):
    """Base class for all PreviewSync errors."""


class ConfigError(PreviewSyncError):
    """Raised when the environment does not describe a usable configuration."""


class BackendError(PreviewSyncError):
    """A request against the storage/database backend failed."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.details = details

    def __str__(self) -> str:
        text = super().__str__()
        if self.status_code is not None:
            text = f"{text} (HTTP {self.status_code})"
        if self.details:
            text = f"{text}: {self.details}"
        return text


class UpstreamFetchError(BackendError):
    """Listing records or downloading a file failed."""


class UpstreamUploadError(BackendError):
    """Uploading a preview or writing its metadata failed."""


class UpstreamDeleteError(BackendError):
    """Deleting a record or a stored file failed."""


class EncodeError(PreviewSyncError):
    """The original image could not be decoded, resized or re-encoded."""
