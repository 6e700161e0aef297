"""
Repository error classes.

Provides a closed taxonomy of errors the repository engine can raise.
Messages never embed client-supplied strings; where an error concerns a
specific package, the validated identity is attached as an attribute instead.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .identity import PackageIdentity


class RepositoryError(Exception):
    """
    Base class for all repository errors.

    The HTTP layer and CLI map these onto status and exit codes, see
    ``operations.mappers``.
    """
    pass


class InvalidPackage(RepositoryError, ValueError):
    """
    Uploaded package cannot be ingested.

    Raised when:
    - Content is not a ZIP archive
    - Archive has no ``.nuspec`` entry, or more than one
    - Nuspec is malformed XML or lacks ``id`` / ``version``
    """
    pass


class PackageVersionAlreadyExists(RepositoryError):
    """
    Package identity is already published.

    Published versions are write-once; a second upload of the same
    (id, version) pair is rejected without touching stored blobs.
    """

    def __init__(self, message: str, identity: Optional["PackageIdentity"] = None):
        super().__init__(message)
        self.identity = identity


class PackageNotFound(RepositoryError, LookupError):
    """
    Requested package data does not exist in storage.

    Raised when:
    - Nuspec or nupkg for an identity is absent
    - Upload source key is absent
    - Package has no published versions (registration index)
    """

    def __init__(self, message: str, identity: Optional["PackageIdentity"] = None):
        super().__init__(message)
        self.identity = identity


class LockUnavailable(RepositoryError):
    """
    Lock on a storage key is held by another writer.

    The lock never waits; retry policy belongs to the caller.
    """
    pass


class CorruptIndex(RepositoryError):
    """
    Stored package metadata exists but cannot be read.

    Raised when:
    - The versions index is not JSON, or is not an object holding a string
      array at ``versions``
    - The versions index lists a string that is not a valid version
    - A stored nuspec is not a well-formed ``package/metadata`` document

    Fatal for the affected package.
    """
    pass


class StoreFailure(RepositoryError):
    """
    Underlying blob store I/O failed.

    Wraps ``OSError`` from storage backends so callers never need to tell
    store errors apart from package errors by type.
    """
    pass


class IllegalState(RepositoryError, RuntimeError):
    """
    Operation invoked on an object in a state that cannot produce a result.

    Raised when:
    - A registration page is rendered for an empty version list
    """
    pass


__all__ = [
    "RepositoryError",
    "InvalidPackage",
    "PackageVersionAlreadyExists",
    "PackageNotFound",
    "LockUnavailable",
    "CorruptIndex",
    "StoreFailure",
    "IllegalState",
]
