"""
Storage interfaces for the NuGet repository.

This protocol defines the boundary between the repository engine and blob
store implementations, enabling dependency injection and testing with fakes.
"""
from __future__ import annotations

from typing import List, Protocol, runtime_checkable

from .key import Key

__all__ = ["Storage"]


@runtime_checkable
class Storage(Protocol):
    """Protocol for key -> bytes blob stores."""

    def exists(self, key: Key) -> bool:
        """
        Check whether a value is stored at ``key``.

        Raises:
            OSError: For I/O errors
        """
        ...

    def value(self, key: Key) -> bytes:
        """
        Read the value stored at ``key``.

        Returns:
            Stored content as bytes

        Raises:
            FileNotFoundError: If nothing is stored at ``key``
            OSError: For other I/O errors
        """
        ...

    def save(self, key: Key, data: bytes) -> None:
        """
        Store ``data`` at ``key``, replacing any previous value.

        Readers observe either the old or the new value, never a partial one.

        Raises:
            OSError: For I/O errors
        """
        ...

    def create(self, key: Key, data: bytes) -> None:
        """
        Store ``data`` at ``key`` only if nothing is stored there yet.

        This is the create-if-absent primitive the lock is built on.

        Raises:
            FileExistsError: If a value already exists at ``key``
            OSError: For other I/O errors
        """
        ...

    def delete(self, key: Key) -> None:
        """
        Remove the value stored at ``key``.

        Raises:
            FileNotFoundError: If nothing is stored at ``key``
            OSError: For other I/O errors
        """
        ...

    def list(self, prefix: Key) -> List[Key]:
        """
        List all keys stored below ``prefix``, recursively, sorted.

        ``Key.ROOT`` lists the whole store.

        Raises:
            OSError: For I/O errors
        """
        ...
