"""
Per-package versions index.

The index is the JSON document ``{"versions": [...]}`` stored at
``{id}/index.json``. It doubles as the NuGet ``PackageBaseAddress`` version
list and as the commit point of an ingest: a version listed here has all of
its blobs in place.
"""
from __future__ import annotations

import json
import logging
from typing import List

from pydantic import BaseModel, Field, StrictStr, ValidationError

from .errors import CorruptIndex
from .identity import PackageId
from .storage.base import Storage
from .storage.key import Key
from .version import Version

__all__ = ["VersionsIndex"]

logger = logging.getLogger(__name__)


class VersionsIndex(BaseModel):
    """Ordered list of normalized versions published for one package."""
    versions: List[StrictStr] = Field(..., description="Normalized versions in insertion order")

    @classmethod
    def load(cls, storage: Storage, package_id: PackageId) -> "VersionsIndex":
        """
        Read the index of ``package_id``; an absent index is empty.

        Raises:
            CorruptIndex: If the stored document is unreadable
            OSError: For store I/O errors
        """
        return cls.load_key(storage, package_id.versions_key)

    @classmethod
    def load_key(cls, storage: Storage, key: Key) -> "VersionsIndex":
        try:
            data = storage.value(key)
        except FileNotFoundError:
            return cls(versions=[])
        try:
            return cls.model_validate_json(data)
        except ValidationError as e:
            logger.debug(f"Unreadable versions index at {key}: {e.error_count()} errors")
            raise CorruptIndex("versions index is corrupt") from e

    def contains(self, version: Version) -> bool:
        return version.normalized in self.versions

    def add(self, version: Version) -> "VersionsIndex":
        """Return a new index with ``version`` appended unless already listed."""
        if self.contains(version):
            return self.model_copy(deep=True)
        return VersionsIndex(versions=[*self.versions, version.normalized])

    def json_bytes(self) -> bytes:
        return json.dumps({"versions": list(self.versions)}, separators=(",", ":")).encode("utf-8")

    def save(self, storage: Storage, key: Key) -> None:
        storage.save(key, self.json_bytes())
