"""
Storage factory with backend switching.

Provides a single factory function that creates the configured blob store,
so call sites never branch on the backend.
"""
from __future__ import annotations

from ..settings import Settings
from .base import Storage


def storage_for(settings: Settings) -> Storage:
    """
    Create the storage backend named by ``settings.storage_backend``.

    Args:
        settings: Repository configuration

    Returns:
        Storage implementation

    Raises:
        ValueError: If the backend is unknown
        ImportError: If the Azure SDK is required but not installed
    """
    backend = settings.storage_backend

    if backend == "memory":
        from .memory import InMemoryStorage
        return InMemoryStorage()
    elif backend == "fs":
        from .filesystem import FileStorage
        return FileStorage(settings.storage_root)
    elif backend == "azure":
        from .azure_blob import AzureBlobStorage
        return AzureBlobStorage(settings=settings)
    else:
        raise ValueError(
            f"Unknown storage backend: {backend}. "
            f"Supported values: memory, fs, azure"
        )


__all__ = ["storage_for"]
