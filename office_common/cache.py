"""In-process TTL cache for room catalogue listings."""
from __future__ import annotations

from typing import Generic, Iterable, Optional, TypeVar

from cachetools import TTLCache

T = TypeVar("T")


class SimpleTTLCache(Generic[T]):
    def __init__(self, ttl: int, maxsize: int = 256) -> None:
        self._cache: TTLCache[str, T] = TTLCache(maxsize=maxsize, ttl=ttl)

    def get(self, key: str) -> Optional[T]:
        return self._cache.get(key)

    def set(self, key: str, value: T) -> None:
        self._cache[key] = value

    def pop(self, key: str) -> None:
        self._cache.pop(key, None)

    def pop_prefix(self, prefix: str) -> None:
        for key in [key for key in self._cache.keys() if key.startswith(prefix)]:
            self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()


class RoomListingCache(SimpleTTLCache[T]):
    """Listings keyed by their filters; any room write drops all of them."""

    PREFIX = "room-list:"

    def listing_key(
        self, capacity: Optional[int], equipment: Optional[Iterable[str]], include_inactive: bool
    ) -> str:
        # Equipment order in the query string does not change the result.
        wanted = ",".join(sorted(set(equipment or [])))
        return f"{self.PREFIX}{capacity or 0}:{wanted}:{int(include_inactive)}"

    def invalidate(self) -> None:
        self.pop_prefix(self.PREFIX)
