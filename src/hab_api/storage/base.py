"""Keyed collection interface shared by all storage backends."""

import asyncio
import builtins
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from hab_api.errors.exceptions import StoreUnavailableError

T = TypeVar("T", bound=BaseModel)

SeedFactory = Callable[[], dict[str, Any]]

_EPOCH = datetime.min.replace(tzinfo=UTC)


class Storage(ABC, Generic[T]):
    """
    A named collection of pydantic models keyed by one of their fields.

    Backends implement the whole-collection pair `get_all`/`save_all` plus
    per-record `get`/`put`/`delete`. Query helpers are built on `get_all`.
    """

    def __init__(
        self,
        name: str,
        model: type[T],
        id_field: str = "id",
        seed: SeedFactory | None = None,
    ):
        self.name = name
        self.model = model
        self.id_field = id_field
        self._seed = seed

    def key_of(self, item: T) -> str:
        return str(getattr(item, self.id_field))

    async def seed_items(self) -> dict[str, T]:
        """
        Build the seed collection (empty if no seed factory).

        The factory runs in a worker thread; seed users carry bcrypt hashes.
        """
        if self._seed is None:
            return {}
        seeded = await asyncio.to_thread(self._seed)
        return {self.key_of(item): item for item in seeded.values()}

    def _decode(self, raw: Any) -> T:
        try:
            return self.model.model_validate(raw)
        except PydanticValidationError as e:
            raise StoreUnavailableError(self.name, f"invalid record: {e.error_count()} errors") from e

    def _encode(self, item: T) -> dict[str, Any]:
        return item.model_dump(mode="json")

    @abstractmethod
    async def get_all(self) -> dict[str, T]:
        """Load the whole collection, materializing the seed set on first read."""

    @abstractmethod
    async def save_all(self, items: Mapping[str, T]) -> None:
        """Replace the whole collection."""

    @abstractmethod
    async def get(self, id: str) -> T | None:
        """Get an item by key."""

    @abstractmethod
    async def put(self, item: T) -> T:
        """Create or replace a single item."""

    @abstractmethod
    async def delete(self, id: str) -> bool:
        """Delete an item by key."""

    async def exists(self, id: str) -> bool:
        return await self.get(id) is not None

    async def count(self, filter_fn: Callable[[T], bool] | None = None) -> int:
        items = (await self.get_all()).values()
        if filter_fn:
            return sum(1 for item in items if filter_fn(item))
        return len(items)

    async def find_one(self, filter_fn: Callable[[T], bool]) -> T | None:
        """Find a single item matching the filter."""
        for item in (await self.get_all()).values():
            if filter_fn(item):
                return item
        return None

    async def find_many(self, filter_fn: Callable[[T], bool]) -> builtins.list[T]:
        """Find all items matching the filter."""
        return [item for item in (await self.get_all()).values() if filter_fn(item)]

    async def list(
        self,
        filter_fn: Callable[[T], bool] | None = None,
        sort_key: str | None = None,
        sort_desc: bool = True,
    ) -> builtins.list[T]:
        """List items with optional filtering and sorting."""
        items = builtins.list((await self.get_all()).values())

        if filter_fn:
            items = [item for item in items if filter_fn(item)]

        if sort_key:
            items.sort(
                key=lambda x: getattr(x, sort_key, None) or _EPOCH,
                reverse=sort_desc,
            )

        return items
