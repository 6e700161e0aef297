"""
NuGet v3 package repository.

Stores ``.nupkg`` uploads in a blob store and serves them through the NuGet
v3 service index, PackageBaseAddress and registration resources.
"""

__version__ = "0.1.0"

from .errors import (
    CorruptIndex,
    IllegalState,
    InvalidPackage,
    LockUnavailable,
    PackageNotFound,
    PackageVersionAlreadyExists,
    RepositoryError,
    StoreFailure,
)
from .identity import PackageId, PackageIdentity
from .nupkg import Hash, Nupkg
from .nuspec import Nuspec
from .repository import Repository
from .version import Version
from .versions import VersionsIndex

__all__ = [
    "__version__",
    "CorruptIndex",
    "Hash",
    "IllegalState",
    "InvalidPackage",
    "LockUnavailable",
    "Nupkg",
    "Nuspec",
    "PackageId",
    "PackageIdentity",
    "PackageNotFound",
    "PackageVersionAlreadyExists",
    "Repository",
    "RepositoryError",
    "StoreFailure",
    "Version",
    "VersionsIndex",
]
