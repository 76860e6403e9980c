import time
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from cachetools import FIFOCache, TTLCache

from config import EMBEDDING_CACHE_SIZE, RESPONSE_CACHE_SIZE, RESPONSE_CACHE_TTL


class EmbeddingCache:
    """Bounded hash -> vector map with insertion-order (FIFO) eviction.

    Reads do not refresh an entry's position; setting a key again re-inserts
    it at the back. No time expiry.
    """

    def __init__(self, max_size: int = EMBEDDING_CACHE_SIZE):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self._data = FIFOCache(maxsize=max_size)

    def get(self, key: str) -> Optional[List[float]]:
        return self._data.get(key)

    def has(self, key: str) -> bool:
        return key in self._data

    def set(self, key: str, vector: Sequence[float]) -> None:
        self._data.pop(key, None)
        self._data[key] = list(vector)

    def update(self, items: Iterable[Tuple[str, Sequence[float]]]) -> None:
        for key, vector in items:
            self.set(key, vector)

    def items(self, limit: Optional[int] = None) -> List[Tuple[str, List[float]]]:
        pairs = list(self._data.items())
        return pairs if limit is None else pairs[:limit]

    def clear(self) -> None:
        self._data.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


def response_cache_key(query: str, source_hashes: Iterable[str]) -> str:
    return "_".join([query, *sorted(source_hashes)])


class ResponseCache:
    """Time-boxed LRU cache of generated answers."""

    def __init__(
        self,
        max_entries: int = RESPONSE_CACHE_SIZE,
        ttl_seconds: float = RESPONSE_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._data = TTLCache(maxsize=max_entries, ttl=ttl_seconds, timer=clock)

    def get(self, key: str) -> Any:
        self._data.expire()
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        self._data.expire()
        return len(self._data)
