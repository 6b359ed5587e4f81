"""
PreviewSync backend clients
"""
from ..config import BACKEND_APPWRITE, BACKEND_LOCAL, SyncConfig
from ..errors import ConfigError
from .appwrite import AppwriteClient
from .base import UNIQUE_ID, BaseBackendClient
from .local import LocalBackendClient


def get_client(config: SyncConfig) -> BaseBackendClient:
    """
    Factory function to get the backend client selected by the config.

    Args:
        config: SyncConfig with backend 'appwrite' or 'local'

    Returns:
        BaseBackendClient instance
    """
    backend = config.backend.lower()
    if backend == BACKEND_APPWRITE:
        missing = config.missing_settings()
        if missing:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")
        return AppwriteClient(config)
    elif backend == BACKEND_LOCAL:
        return LocalBackendClient(config.local_storage_path)
    else:
        raise ValueError(f"Unknown backend: {config.backend}. Use 'appwrite' or 'local'.")


__all__ = ["get_client", "BaseBackendClient", "AppwriteClient", "LocalBackendClient", "UNIQUE_ID"]
