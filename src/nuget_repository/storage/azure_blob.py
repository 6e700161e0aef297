"""
Azure Blob Storage backend.

Implements the Storage protocol over a single blob container. ``create`` maps
onto ``upload_blob(overwrite=False)``, which the service applies atomically,
so the repository lock holds across processes sharing the container.
"""
from __future__ import annotations

import logging
import re
from typing import List

from ..settings import Settings
from .base import Storage
from .key import Key

__all__ = ["AzureBlobStorage"]

logger = logging.getLogger(__name__)


class AzureBlobStorage(Storage):
    """
    Storage adapter for Azure Blob Storage.

    Uses azure-storage-blob SDK with connection string or account+key authentication.
    Supports custom endpoints for Azurite and private Azure clouds.
    """

    def __init__(self, *, settings: Settings) -> None:
        """
        Initialize Azure adapter with settings.

        Args:
            settings: Settings containing Azure authentication and configuration

        Raises:
            ValueError: If Azure authentication is not properly configured
        """
        self._settings = settings
        self._validate_azure_auth()
        self._container = None

        if settings.az_connection_string:
            if settings.az_blob_endpoint:
                logger.debug(f"Azure storage using connection string auth with custom endpoint: {settings.az_blob_endpoint}")
            else:
                logger.debug("Azure storage using connection string auth")
        else:
            if settings.az_blob_endpoint:
                logger.debug(f"Azure storage using account+key auth for {settings.az_account} with custom endpoint: {settings.az_blob_endpoint}")
            else:
                logger.debug(f"Azure storage using account+key auth for {settings.az_account}")

        logger.debug(f"Azure storage container: {settings.az_container}, timeout: {settings.ext_timeout_s}s")

    def _validate_azure_auth(self) -> None:
        """Validate Azure authentication configuration."""
        has_conn_str = bool(self._settings.az_connection_string)
        has_account_key = bool(self._settings.az_account and self._settings.az_key)

        if not has_conn_str and not has_account_key:
            raise ValueError("Azure authentication not configured: need AZURE_STORAGE_CONNECTION_STRING or (AZURE_STORAGE_ACCOUNT + AZURE_STORAGE_KEY)")

    def _service_client(self):
        """
        Build the blob service client.

        Handles four connection patterns:

        1. Connection string (standard Azure cloud endpoints)
        2. Connection string + custom endpoint: account name is taken from the
           connection string and the endpoint overridden (Azurite/private clouds)
        3. Account+key against https://{account}.blob.core.windows.net
        4. Account+key + custom endpoint: {endpoint}/{account}

        All patterns share the retry configuration (5 retries, 0.4s backoff).
        """
        from azure.storage.blob import BlobServiceClient

        options = dict(
            connection_timeout=self._settings.ext_timeout_s,
            retry_total=5,
            retry_backoff_factor=0.4,
        )
        endpoint = self._settings.az_blob_endpoint.rstrip("/") if self._settings.az_blob_endpoint else None

        if self._settings.az_connection_string:
            account_match = re.search(r"AccountName=([^;]+)", self._settings.az_connection_string)
            if endpoint and account_match:
                return BlobServiceClient(
                    account_url=f"{endpoint}/{account_match.group(1)}",
                    credential=None,
                    **options,
                )
            return BlobServiceClient.from_connection_string(self._settings.az_connection_string, **options)

        account_url = (
            f"{endpoint}/{self._settings.az_account}"
            if endpoint
            else f"https://{self._settings.az_account}.blob.core.windows.net"
        )
        return BlobServiceClient(account_url=account_url, credential=self._settings.az_key, **options)

    def _container_client(self):
        if self._container is None:
            self._container = self._service_client().get_container_client(self._settings.az_container)
        return self._container

    def _blob(self, key: Key):
        if key.is_root():
            raise IsADirectoryError("root key has no value")
        return self._container_client().get_blob_client(str(key))

    def exists(self, key: Key) -> bool:
        if key.is_root():
            return False
        try:
            return bool(self._blob(key).exists())
        except Exception as e:
            raise OSError(f"Azure blob exists error: {e}") from e

    def value(self, key: Key) -> bytes:
        from azure.core.exceptions import ResourceNotFoundError

        try:
            return self._blob(key).download_blob().readall()
        except ResourceNotFoundError:
            raise FileNotFoundError(str(key))
        except Exception as e:
            raise OSError(f"Azure blob download error: {e}") from e

    def save(self, key: Key, data: bytes) -> None:
        try:
            self._blob(key).upload_blob(data, overwrite=True)
        except Exception as e:
            raise OSError(f"Azure blob upload error: {e}") from e

    def create(self, key: Key, data: bytes) -> None:
        from azure.core.exceptions import ResourceExistsError

        try:
            self._blob(key).upload_blob(data, overwrite=False)
        except ResourceExistsError:
            raise FileExistsError(str(key))
        except Exception as e:
            raise OSError(f"Azure blob upload error: {e}") from e

    def delete(self, key: Key) -> None:
        from azure.core.exceptions import ResourceNotFoundError

        try:
            self._blob(key).delete_blob()
        except ResourceNotFoundError:
            raise FileNotFoundError(str(key))
        except Exception as e:
            raise OSError(f"Azure blob delete error: {e}") from e

    def list(self, prefix: Key) -> List[Key]:
        starts_with = None if prefix.is_root() else f"{prefix}/"
        try:
            names = [blob.name for blob in self._container_client().list_blobs(name_starts_with=starts_with)]
        except Exception as e:
            raise OSError(f"Azure blob list error: {e}") from e
        return sorted(Key(name) for name in names)
