"""JSON file storage: one file per collection."""

import asyncio
import json
import logging
import os
import tempfile
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any

from hab_api.errors.exceptions import StoreUnavailableError
from hab_api.storage.base import SeedFactory, Storage, T

logger = logging.getLogger(__name__)


class FileLayout(str, Enum):
    """How records are laid out in the file."""

    OBJECT = "object"  # {"<key>": {...}, ...}
    ARRAY = "array"  # [{...}, ...] in insertion order


class JsonFileStorage(Storage[T]):
    """
    Collection persisted as a single JSON document.

    A missing or empty file is materialized from the seed set on first read.
    Every write replaces the file atomically (temp file + os.replace), and
    read-modify-write cycles are serialized by an asyncio lock. Unreadable or
    malformed files raise StoreUnavailableError rather than falling back to
    defaults.
    """

    def __init__(
        self,
        name: str,
        model: type[T],
        path: Path,
        id_field: str = "id",
        seed: SeedFactory | None = None,
        layout: FileLayout = FileLayout.OBJECT,
    ):
        super().__init__(name, model, id_field, seed)
        self.path = Path(path)
        self.layout = layout
        self._lock = asyncio.Lock()

    def _read(self) -> dict[str, T] | None:
        """Parse the file; None when it is missing or empty."""
        try:
            text = self.path.read_text(encoding="utf-8") if self.path.exists() else ""
        except OSError as e:
            raise StoreUnavailableError(self.name, str(e)) from e

        if not text.strip():
            return None

        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise StoreUnavailableError(self.name, f"malformed JSON: {e}") from e

        if isinstance(raw, list):
            records = [self._decode(entry) for entry in raw]
            return {self.key_of(record): record for record in records}
        if isinstance(raw, dict):
            return {key: self._decode(entry) for key, entry in raw.items()}
        raise StoreUnavailableError(self.name, f"unexpected top-level {type(raw).__name__}")

    async def _load(self) -> dict[str, T]:
        items = self._read()
        if items is None:
            items = await self.seed_items()
            self._write(items)
            logger.info("Initialized %s with %d seed records at %s", self.name, len(items), self.path)
        return items

    def _write(self, items: Mapping[str, T]) -> None:
        payload: Any
        if self.layout == FileLayout.ARRAY:
            payload = [self._encode(item) for item in items.values()]
        else:
            payload = {key: self._encode(item) for key, item in items.items()}

        tmp_path: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2)
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as e:
            raise StoreUnavailableError(self.name, str(e)) from e
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)

    async def get_all(self) -> dict[str, T]:
        async with self._lock:
            return await self._load()

    async def save_all(self, items: Mapping[str, T]) -> None:
        async with self._lock:
            self._write(items)

    async def get(self, id: str) -> T | None:
        async with self._lock:
            return (await self._load()).get(id)

    async def put(self, item: T) -> T:
        async with self._lock:
            items = await self._load()
            items[self.key_of(item)] = item
            self._write(items)
        return item

    async def delete(self, id: str) -> bool:
        async with self._lock:
            items = await self._load()
            if id not in items:
                return False
            del items[id]
            self._write(items)
            return True
