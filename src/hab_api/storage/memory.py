"""In-memory storage implementation."""

from collections.abc import Mapping

from hab_api.storage.base import SeedFactory, Storage, T


class InMemoryStorage(Storage[T]):
    """Collection kept in a process-local dictionary."""

    def __init__(
        self,
        name: str,
        model: type[T],
        id_field: str = "id",
        seed: SeedFactory | None = None,
    ):
        super().__init__(name, model, id_field, seed)
        self._store: dict[str, T] = {}
        self._seeded = False

    async def _ensure_seeded(self) -> None:
        if self._seeded:
            return
        items = await self.seed_items()
        # Another coroutine may have seeded while the factory ran
        if not self._seeded:
            self._store.update(items)
            self._seeded = True

    async def get_all(self) -> dict[str, T]:
        await self._ensure_seeded()
        return {key: item.model_copy() for key, item in self._store.items()}

    async def save_all(self, items: Mapping[str, T]) -> None:
        self._seeded = True
        self._store = {key: item.model_copy() for key, item in items.items()}

    async def get(self, id: str) -> T | None:
        await self._ensure_seeded()
        item = self._store.get(id)
        return item.model_copy() if item is not None else None

    async def put(self, item: T) -> T:
        await self._ensure_seeded()
        self._store[self.key_of(item)] = item.model_copy()
        return item

    async def delete(self, id: str) -> bool:
        await self._ensure_seeded()
        if id in self._store:
            del self._store[id]
            return True
        return False

    def clear(self) -> None:
        """Clear all items (for testing)."""
        self._store.clear()
        self._seeded = True
