import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple
from storefront.remote import logger
from storefront.storage.utils import build_key, deserialize, serialize


class QueryCache:
    """In-process cache for read-only api queries, keyed like "api:products:42".

    Entries live for `ttl_seconds` (forever when None) until invalidated by
    prefix; expired entries are swept on every store and at most
    `max_entries` are kept, oldest first out. Loads for the same key are
    serialized so a cold key is fetched once; the lock goes away with its
    last waiter.
    """

    def __init__(self, ttl_seconds: Optional[float] = None, max_entries: Optional[int] = 1024,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, Tuple[float, str]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, stored_at: float, now: float) -> bool:
        return self.ttl_seconds is not None and now - stored_at >= self.ttl_seconds

    def _fresh(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, raw = entry
        if self._expired(stored_at, self._clock()):
            self._entries.pop(key, None)
            return None
        return raw

    async def get_or_load(self, key_parts: Tuple[str, ...], loader: Callable[[], Awaitable[Any]]) -> Any:
        key = build_key(*key_parts)
        raw = self._fresh(key)
        if raw is not None:
            return deserialize(raw)

        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                # another caller may have filled it while we waited
                raw = self._fresh(key)
                if raw is not None:
                    return deserialize(raw)

                value = await loader()
                self._store(key, value)
                return value
        finally:
            self._waiters[key] -= 1
            if not self._waiters[key]:
                del self._waiters[key]
                self._locks.pop(key, None)

    def _store(self, key: str, value: Any) -> None:
        now = self._clock()
        expired = [k for k, (stored_at, _) in self._entries.items() if self._expired(stored_at, now)]
        for k in expired:
            del self._entries[k]
        self._entries.pop(key, None)
        self._entries[key] = (now, serialize(value))
        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                del self._entries[next(iter(self._entries))]
        logger.debug("query_cache.stored", extra={"key": key, "swept": len(expired)})

    def invalidate(self, *prefix_parts: str) -> int:
        prefix = build_key(*prefix_parts)
        stale = [k for k in self._entries if k == prefix or k.startswith(prefix + ":")]
        for key in stale:
            self._entries.pop(key, None)
        if stale:
            logger.debug("query_cache.invalidated", extra={"prefix": prefix, "count": len(stale)})
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()
