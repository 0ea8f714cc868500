"""Durable key-value storage for JSON-serializable values."""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Protocol

from .errors import StorageFailure

LOGGER = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore(Protocol):
    """Asynchronous mapping from string keys to JSON values.

    Single-key operations only; callers needing consistency across several
    values keep them under one composite key.
    """

    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def remove(self, key: str) -> None: ...


class MemoryStore:
    """In-process store, mostly useful for tests."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial or {})

    async def get(self, key: str) -> Any | None:
        value = self._data.get(key)
        return copy.deepcopy(value)

    async def set(self, key: str, value: Any) -> None:
        try:
            # Round-trip through JSON so non-serializable values fail here
            # rather than silently living in memory.
            self._data[key] = json.loads(json.dumps(value))
        except (TypeError, ValueError) as exc:
            raise StorageFailure(f"Value for {key!r} is not JSON serializable: {exc}") from exc

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """Store each key as ``<directory>/<key>.json``.

    Writes go to a temporary file which then replaces the target, so a reader
    never sees a half-written value.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    async def get(self, key: str) -> Any | None:
        return await asyncio.to_thread(self._read, self._path(key))

    async def set(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._write, self._path(key), value)

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self._unlink, self._path(key))

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def _read(self, path: Path) -> Any | None:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageFailure(f"Failed reading {path}: {exc}") from exc
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageFailure(f"Invalid JSON in {path}: {exc}") from exc

    def _write(self, path: Path, value: Any) -> None:
        try:
            payload = json.dumps(value, indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise StorageFailure(f"Value for {path.stem!r} is not JSON serializable: {exc}") from exc
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageFailure(f"Failed writing {path}: {exc}") from exc
        LOGGER.debug("Saved %s", path)

    def _unlink(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageFailure(f"Failed removing {path}: {exc}") from exc


__all__ = ["KeyValueStore", "MemoryStore", "JsonFileStore"]
