"""
Storage key type.

Keys are relative, ``/``-separated paths into a blob store. Validation
mirrors the traversal rules applied to user-provided paths: no absolute
paths, no ``.`` or ``..`` segments, no backslashes, no empty segments.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

__all__ = ["Key"]


@dataclass(frozen=True, order=True)
class Key:
    """
    Immutable storage key.

    ``Key.ROOT`` is the empty key; listing it enumerates the whole store.

    Examples:
        >>> str(Key.join("newtonsoft.json", "index.json"))
        'newtonsoft.json/index.json'

        >>> Key("a/b").parent
        Key(path='a')
    """
    path: str = ""

    ROOT: ClassVar["Key"]

    def __post_init__(self) -> None:
        if self.path == "":
            return
        if "\\" in self.path or self.path.startswith("/") or self.path.endswith("/"):
            raise ValueError(f"unsafe key: {self.path}")
        for part in self.path.split("/"):
            if part in ("", ".", ".."):
                raise ValueError(f"unsafe key: {self.path}")

    @classmethod
    def join(cls, *parts: "Key | str") -> "Key":
        """Join keys and path fragments, skipping empty ones."""
        segments = [str(part) for part in parts if str(part)]
        return cls("/".join(segments))

    def child(self, name: str) -> "Key":
        return Key.join(self, name)

    @property
    def parts(self) -> tuple[str, ...]:
        return tuple(self.path.split("/")) if self.path else ()

    @property
    def name(self) -> str:
        return self.parts[-1] if self.path else ""

    @property
    def parent(self) -> "Key":
        return Key("/".join(self.parts[:-1]))

    def is_root(self) -> bool:
        return self.path == ""

    def is_under(self, prefix: "Key") -> bool:
        """True when this key lies strictly below ``prefix`` (any key is under ROOT)."""
        if prefix.is_root():
            return not self.is_root()
        return self.path.startswith(prefix.path + "/")

    def __str__(self) -> str:
        return self.path


Key.ROOT = Key()
