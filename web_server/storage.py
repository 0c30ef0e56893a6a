"""Durable visitor storage.

A tiny key/value slot API in the shape of the browser's localStorage:
`get_item`, `set_item`, `remove_item`. Values are strings; callers own the
serialization.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Protocol


_SAFE_NAME = re.compile(r"^[A-Za-z0-9_-]+$")


class ClientStorage(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """In-process storage. Used in tests and for throwaway sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileStorage:
    """One file per key under `directory`.

    Writes go to a temp file first and are renamed into place, so a crash
    mid-write never leaves a half-written slot behind.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not _SAFE_NAME.match(key):
            raise ValueError(f"invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get_item(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)

    def remove_item(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


def visitor_storage(root: str | Path, visitor_id: str) -> FileStorage:
    """Storage scoped to a single visitor directory under `root`."""
    if not _SAFE_NAME.match(visitor_id):
        raise ValueError(f"invalid visitor id: {visitor_id!r}")
    return FileStorage(Path(root) / visitor_id)
