"""Blob store protocol, key type and backends."""
from .base import Storage
from .factory import storage_for
from .filesystem import FileStorage
from .key import Key
from .memory import InMemoryStorage

__all__ = ["Storage", "Key", "InMemoryStorage", "FileStorage", "storage_for"]
