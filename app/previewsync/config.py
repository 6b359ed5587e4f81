"""
Configuration for PreviewSync.

Settings are read once from the environment into an immutable SyncConfig which
is then handed to the client and the sync service.

Environment Variables:
    APPWRITE_ENDPOINT: Appwrite API endpoint (default: Sydney cloud region)
    APPWRITE_PROJECT_ID: Appwrite project id
    APPWRITE_API_KEY: Server API key (APIWRITE_API_KEY is accepted too)
    APPWRITE_DATABASE_ID: Database holding both collections
    SOURCE_BUCKET_ID / SOURCE_COLLECTION_ID: Where the original images live
    TARGET_BUCKET_ID / TARGET_COLLECTION_ID: Where previews are written
    PREVIEW_SYNC_BACKEND: 'appwrite' or 'local'
    LOCAL_STORAGE_PATH: Root folder for the local backend
"""
import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

from .errors import ConfigError

DEFAULT_ENDPOINT = "https://syd.cloud.appwrite.io/v1"
DEFAULT_PROJECT_ID = "682b826b003d9cba9018"
DEFAULT_DATABASE_ID = "682b89cc0016319fcf30"
DEFAULT_BUCKET_ID = "682b8a3a001fb3d3e9f2"
DEFAULT_COLLECTION_ID = "682b8a1a003b15611710"

BACKEND_APPWRITE = "appwrite"
BACKEND_LOCAL = "local"

ENV_API_KEY = "APPWRITE_API_KEY"
# Name used by the first deployments of the function
LEGACY_ENV_API_KEY = "APIWRITE_API_KEY"


def _int_setting(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


@dataclass(frozen=True)
class SyncConfig:
    """Everything the synchronizer needs to reach the backend."""
    endpoint: str = DEFAULT_ENDPOINT
    project_id: str = DEFAULT_PROJECT_ID
    api_key: Optional[str] = None
    database_id: str = DEFAULT_DATABASE_ID
    source_bucket_id: str = DEFAULT_BUCKET_ID
    source_collection_id: Optional[str] = None
    target_bucket_id: str = DEFAULT_BUCKET_ID
    target_collection_id: str = DEFAULT_COLLECTION_ID
    backend: str = BACKEND_APPWRITE
    local_storage_path: str = "local_storage"
    page_size: int = 100
    preview_width: int = 480
    preview_quality: int = 75
    max_payload_kb: int = 16000
    request_timeout: int = 60

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SyncConfig":
        """Build a config from environment variables, falling back to defaults."""
        env = os.environ if environ is None else environ

        api_key = env.get(ENV_API_KEY) or env.get(LEGACY_ENV_API_KEY) or None
        source_bucket_id = env.get("SOURCE_BUCKET_ID", DEFAULT_BUCKET_ID)
        backend = env.get("PREVIEW_SYNC_BACKEND") or (BACKEND_APPWRITE if api_key else BACKEND_LOCAL)

        quality = _int_setting(env, "PREVIEW_QUALITY", 75)
        if quality > 100:
            raise ConfigError(f"PREVIEW_QUALITY must be between 1 and 100, got {quality}")

        return cls(
            endpoint=env.get("APPWRITE_ENDPOINT", DEFAULT_ENDPOINT).rstrip("/"),
            project_id=env.get("APPWRITE_PROJECT_ID", DEFAULT_PROJECT_ID),
            api_key=api_key,
            database_id=env.get("APPWRITE_DATABASE_ID", DEFAULT_DATABASE_ID),
            source_bucket_id=source_bucket_id,
            source_collection_id=env.get("SOURCE_COLLECTION_ID") or None,
            target_bucket_id=env.get("TARGET_BUCKET_ID") or source_bucket_id,
            target_collection_id=env.get("TARGET_COLLECTION_ID", DEFAULT_COLLECTION_ID),
            backend=backend.lower(),
            local_storage_path=env.get("LOCAL_STORAGE_PATH", "local_storage"),
            page_size=_int_setting(env, "PAGE_SIZE", 100),
            preview_width=_int_setting(env, "PREVIEW_WIDTH", 480),
            preview_quality=quality,
            max_payload_kb=_int_setting(env, "MAX_PAYLOAD_KB", 16000),
            request_timeout=_int_setting(env, "REQUEST_TIMEOUT", 60),
        )

    @property
    def source_mode(self) -> str:
        """'collection' when originals are described by documents, 'bucket' otherwise."""
        return "collection" if self.source_collection_id else "bucket"

    @property
    def max_payload_bytes(self) -> int:
        return self.max_payload_kb * 1024

    def missing_settings(self) -> List[str]:
        """Return the names of required variables that are not set."""
        if self.backend != BACKEND_APPWRITE:
            return []
        missing = []
        if not self.endpoint:
            missing.append("APPWRITE_ENDPOINT")
        if not self.project_id:
            missing.append("APPWRITE_PROJECT_ID")
        if not self.api_key:
            missing.append(ENV_API_KEY)
        return missing

    def is_configured(self) -> bool:
        return not self.missing_settings()
