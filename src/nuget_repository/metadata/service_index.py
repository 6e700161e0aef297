"""
NuGet v3 service index.

See https://learn.microsoft.com/en-us/nuget/api/service-index
"""
from __future__ import annotations

from typing import Any, Dict

__all__ = ["ServiceIndex", "SERVICE_INDEX_VERSION", "RESOURCES"]

SERVICE_INDEX_VERSION = "3.0.0"

# (path below the base URL, resource type), in published order
RESOURCES = (
    ("package", "PackagePublish/2.0.0"),
    ("registrations", "RegistrationsBaseUrl/Versioned"),
    ("content", "PackageBaseAddress/3.0.0"),
)


class ServiceIndex:
    """Service index advertising the resources served below ``base_url``."""

    def __init__(self, base_url: str) -> None:
        self._base = base_url.rstrip("/")

    @property
    def base_url(self) -> str:
        return self._base

    def json(self) -> Dict[str, Any]:
        return {
            "version": SERVICE_INDEX_VERSION,
            "resources": [
                {"@id": f"{self._base}/{path}", "@type": kind}
                for path, kind in RESOURCES
            ],
        }
