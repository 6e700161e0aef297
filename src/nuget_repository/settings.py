"""
Settings and configuration for the NuGet repository.

Centralizes configuration values and provides validation with fail-fast behavior.
Loads settings from environment variables, optionally layered over a YAML file.
"""
from __future__ import annotations

import dataclasses
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

__all__ = ["Settings", "create_settings_from_env", "create_settings_from_file"]

STORAGE_BACKENDS = ("memory", "fs", "azure")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
    """
    Configuration settings for the repository service.

    Service Settings:
        base_url: Public base URL advertised in the service index
        host: Bind address for ``serve``
        port: Bind port for ``serve``
        log_level: Root logging level

    Storage Settings:
        storage_backend: One of "memory", "fs", "azure"
        storage_root: Root directory for the "fs" backend
        lock_ttl_s: Age after which a lock marker counts as orphaned (None disables)

    Azure Blob Storage Settings:
        az_connection_string: Azure storage connection string
        az_account: Azure storage account name
        az_key: Azure storage account key
        az_blob_endpoint: Custom Azure blob endpoint (for Azurite/private endpoints)
        az_container: Container holding the repository blobs
        ext_timeout_s: Azure operation timeout
    """
    base_url: str = "http://localhost:8080"
    host: str = "127.0.0.1"
    port: int = 8080
    log_level: str = "INFO"

    storage_backend: str = "fs"
    storage_root: str = "./nuget-data"
    lock_ttl_s: Optional[float] = 600.0

    az_connection_string: Optional[str] = None
    az_account: Optional[str] = None
    az_key: Optional[str] = None
    az_blob_endpoint: Optional[str] = None
    az_container: str = "nuget"
    ext_timeout_s: float = 60.0

    def __post_init__(self):
        """Validate settings on construction."""
        if not self.base_url:
            raise ValueError("base_url is required")

        url_pattern = r"^https?://[a-zA-Z0-9.-]+(?::[0-9]+)?(?:/.*)?$"
        if not re.match(url_pattern, self.base_url):
            raise ValueError(f"Invalid base_url format: {self.base_url}")

        if not 0 < self.port < 65536:
            raise ValueError(f"port must be between 1 and 65535, got {self.port}")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}. Use one of {', '.join(LOG_LEVELS)}")

        if self.storage_backend not in STORAGE_BACKENDS:
            raise ValueError(
                f"Invalid storage_backend: {self.storage_backend}. "
                f"Supported values: {', '.join(STORAGE_BACKENDS)}"
            )

        if self.storage_backend == "fs" and not self.storage_root:
            raise ValueError("storage_root is required for the fs backend")

        if self.lock_ttl_s is not None and self.lock_ttl_s <= 0:
            raise ValueError(f"lock_ttl_s must be positive, got {self.lock_ttl_s}")

        if self.ext_timeout_s <= 0:
            raise ValueError(f"ext_timeout_s must be positive, got {self.ext_timeout_s}")

        # Azure container names: 3-63 chars, lowercase letters, digits, single hyphens
        if not re.match(r"^[a-z0-9](?!.*--)[a-z0-9-]{1,61}[a-z0-9]$", self.az_container):
            raise ValueError(f"Invalid az_container: {self.az_container}")

        has_conn_str = bool(self.az_connection_string)
        has_account_key = bool(self.az_account and self.az_key)

        if has_conn_str and has_account_key:
            raise ValueError("Specify either az_connection_string OR (az_account + az_key), not both")

        # Partial account auth is always a mistake
        if self.az_account and not self.az_key:
            raise ValueError("az_account specified but az_key is missing")
        if self.az_key and not self.az_account:
            raise ValueError("az_key specified but az_account is missing")

        if self.storage_backend == "azure" and not (has_conn_str or has_account_key):
            raise ValueError(
                "Azure storage requires AZURE_STORAGE_CONNECTION_STRING or "
                "(AZURE_STORAGE_ACCOUNT + AZURE_STORAGE_KEY)"
            )

    @property
    def public_base_url(self) -> str:
        """Base URL without trailing slash."""
        return self.base_url.rstrip("/")


def create_settings_from_env() -> Settings:
    """
    Load settings from environment variables.

    Environment Variables:
        Service:
        - NUGET_REPO_BASE_URL (default: http://localhost:8080)
        - NUGET_REPO_HOST (default: 127.0.0.1)
        - NUGET_REPO_PORT (default: 8080)
        - NUGET_REPO_LOG_LEVEL (default: INFO)

        Storage:
        - NUGET_REPO_STORAGE (default: fs)
        - NUGET_REPO_STORAGE_ROOT (default: ./nuget-data)
        - NUGET_REPO_LOCK_TTL (default: 600, 0 disables)

        Azure:
        - AZURE_STORAGE_CONNECTION_STRING (optional)
        - AZURE_STORAGE_ACCOUNT (optional)
        - AZURE_STORAGE_KEY (optional)
        - NUGET_REPO_AZURE_BLOB_ENDPOINT (optional, for Azurite/custom endpoints)
        - NUGET_REPO_AZURE_CONTAINER (default: nuget)
        - NUGET_REPO_EXT_TIMEOUT (default: 60.0)

    Returns:
        Settings object with validated configuration

    Raises:
        ValueError: If configuration is invalid

    Note:
        Creates a fresh Settings instance every time (no caching).
    """
    return Settings(**_env_overrides())


def create_settings_from_file(path: str | Path) -> Settings:
    """
    Load settings from a YAML file, with environment variables taking precedence.

    The file holds a mapping whose keys are ``Settings`` field names.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not a mapping, names unknown fields,
            or the resulting configuration is invalid
    """
    import yaml

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")

    known = {field.name for field in dataclasses.fields(Settings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown configuration keys in {path}: {', '.join(unknown)}")

    values: Dict[str, Any] = dict(data)
    if values.get("lock_ttl_s") == 0:
        values["lock_ttl_s"] = None
    values.update(_env_overrides())
    return Settings(**values)


def _env_overrides() -> Dict[str, Any]:
    """Collect settings present in the environment; absent variables are omitted."""
    def get_float(key: str) -> Optional[float]:
        value = os.getenv(key)
        return float(value) if value else None

    def get_int(key: str) -> Optional[int]:
        value = os.getenv(key)
        return int(value) if value else None

    values: Dict[str, Any] = {
        "base_url": os.getenv("NUGET_REPO_BASE_URL"),
        "host": os.getenv("NUGET_REPO_HOST"),
        "port": get_int("NUGET_REPO_PORT"),
        "log_level": os.getenv("NUGET_REPO_LOG_LEVEL"),
        "storage_backend": os.getenv("NUGET_REPO_STORAGE"),
        "storage_root": os.getenv("NUGET_REPO_STORAGE_ROOT"),
        "az_connection_string": os.getenv("AZURE_STORAGE_CONNECTION_STRING"),
        "az_account": os.getenv("AZURE_STORAGE_ACCOUNT"),
        "az_key": os.getenv("AZURE_STORAGE_KEY"),
        "az_blob_endpoint": os.getenv("NUGET_REPO_AZURE_BLOB_ENDPOINT"),
        "az_container": os.getenv("NUGET_REPO_AZURE_CONTAINER"),
        "ext_timeout_s": get_float("NUGET_REPO_EXT_TIMEOUT"),
    }
    values = {name: value for name, value in values.items() if value is not None}

    # Zero disables lock expiry
    ttl = get_float("NUGET_REPO_LOCK_TTL")
    if ttl is not None:
        values["lock_ttl_s"] = ttl if ttl > 0 else None

    return values
