"""
In-memory blob store.

Keys live in a dict guarded by a lock so ``create`` is atomic across
threads sharing one instance.
"""
from __future__ import annotations

import threading
from typing import Dict, List

from .base import Storage
from .key import Key

__all__ = ["InMemoryStorage"]


class InMemoryStorage(Storage):
    """
    Thread-safe in-memory store keyed by ``Key``.

    Suitable for tests and single-process deployments that do not need
    packages to survive a restart.
    """

    def __init__(self) -> None:
        self._objects: Dict[Key, bytes] = {}
        self._lock = threading.Lock()

    def exists(self, key: Key) -> bool:
        with self._lock:
            return key in self._objects

    def value(self, key: Key) -> bytes:
        with self._lock:
            if key not in self._objects:
                raise FileNotFoundError(str(key))
            return self._objects[key]

    def save(self, key: Key, data: bytes) -> None:
        with self._lock:
            self._objects[key] = bytes(data)

    def create(self, key: Key, data: bytes) -> None:
        with self._lock:
            if key in self._objects:
                raise FileExistsError(str(key))
            self._objects[key] = bytes(data)

    def delete(self, key: Key) -> None:
        with self._lock:
            if key not in self._objects:
                raise FileNotFoundError(str(key))
            del self._objects[key]

    def list(self, prefix: Key) -> List[Key]:
        with self._lock:
            return sorted(key for key in self._objects if key.is_under(prefix))

    def clear(self) -> None:
        """Drop all stored values."""
        with self._lock:
            self._objects.clear()
