"""
Local filesystem blob store.

Each key maps onto a file below a root directory. ``save`` writes to a temp
file in the target directory and renames it into place; ``create`` relies on
``O_CREAT | O_EXCL`` for create-if-absent.
"""
from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import List

from .base import Storage
from .key import Key

__all__ = ["FileStorage"]

logger = logging.getLogger(__name__)

TEMP_PREFIX = ".nuget.tmp."


class FileStorage(Storage):
    """
    Blob store backed by a directory tree.

    Safe for several processes sharing one directory on a local filesystem.
    Network filesystems must honour ``O_EXCL`` for the lock to hold.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        logger.debug(f"File storage rooted at {self._root}")

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: Key) -> Path:
        if key.is_root():
            raise IsADirectoryError("root key has no value")
        return self._root.joinpath(*key.parts)

    def exists(self, key: Key) -> bool:
        if key.is_root():
            return False
        return self._path(key).is_file()

    def value(self, key: Key) -> bytes:
        path = self._path(key)
        if not path.is_file():
            raise FileNotFoundError(str(key))
        return path.read_bytes()

    def save(self, key: Key, data: bytes) -> None:
        target = self._path(key)
        target.parent.mkdir(parents=True, exist_ok=True)

        # Temp file in the same directory so the rename stays atomic
        fd, temp_name = tempfile.mkstemp(prefix=TEMP_PREFIX, dir=target.parent)
        temp_path = Path(temp_name)
        try:
            with os.fdopen(fd, "wb") as out:
                out.write(data)
                out.flush()
                os.fsync(out.fileno())
            os.replace(temp_path, target)
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise

    def create(self, key: Key, data: bytes) -> None:
        target = self._path(key)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        try:
            with os.fdopen(fd, "wb") as out:
                out.write(data)
                out.flush()
                os.fsync(out.fileno())
        except BaseException:
            # Only the file this call created is removed
            target.unlink(missing_ok=True)
            raise

    def delete(self, key: Key) -> None:
        path = self._path(key)
        if not path.is_file():
            raise FileNotFoundError(str(key))
        # Empty parent directories are left in place; a concurrent create may need them
        path.unlink()

    def list(self, prefix: Key) -> List[Key]:
        base = self._root.joinpath(*prefix.parts)
        if not base.is_dir():
            return []
        keys = []
        for path in base.rglob("*"):
            if not path.is_file() or path.name.startswith(TEMP_PREFIX):
                continue
            keys.append(Key("/".join(path.relative_to(self._root).parts)))
        return sorted(keys)
