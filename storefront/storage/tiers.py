import time
from collections import OrderedDict
from typing import Callable, Dict, Optional, Set
import redis.asyncio as redis
from storefront.common.custom_exceptions import StorageError
from storefront.storage import logger
from storefront.storage.utils import build_key

KEY_PREFIX = "bloomcart"


class StorageTier:
    """Web-storage shaped string key/value store.

    Every access failure surfaces as StorageError so callers can degrade
    without knowing the backend.
    """

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError


class MemoryStorage(StorageTier):

    def __init__(self, data: Optional[Dict[str, str]] = None, quota: Optional[int] = None,
                 namespace: Optional[str] = None):
        self._data = data if data is not None else {}
        self.quota = quota
        self.namespace = namespace
        self.disabled = False

    def _check_enabled(self):
        if self.disabled:
            raise StorageError("storage is disabled")

    def get_item(self, key: str) -> Optional[str]:
        self._check_enabled()
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._check_enabled()
        if self.quota is not None and key not in self._data and len(self._data) >= self.quota:
            raise StorageError("storage quota exceeded")
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._check_enabled()
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def __len__(self):
        return len(self._data)


class BufferedStorage(MemoryStorage):
    """Request-local copy of a remote namespace; records what has to be written back."""

    def __init__(self, namespace: str, data: Optional[Dict[str, str]] = None, quota: Optional[int] = None):
        super().__init__(data, quota=quota, namespace=namespace)
        self.dirty: Set[str] = set()
        self.removed: Set[str] = set()

    def set_item(self, key: str, value: str) -> None:
        super().set_item(key, value)
        self.dirty.add(key)
        self.removed.discard(key)

    def remove_item(self, key: str) -> None:
        super().remove_item(key)
        self.removed.add(key)
        self.dirty.discard(key)

    @property
    def pending(self) -> bool:
        return bool(self.dirty or self.removed)


class MemoryStorageBackend:
    """Hands out one MemoryStorage per namespace (visitor tab or device).

    A namespace is only kept once a flush finds something in it, and is
    forgotten again when it empties, after `idle_seconds` without a visit,
    or when more than `max_namespaces` are held (least recently used first).
    """

    def __init__(self, quota: Optional[int] = None, idle_seconds: Optional[float] = None,
                 max_namespaces: Optional[int] = None, clock: Callable[[], float] = time.monotonic):
        self.quota = quota
        self.idle_seconds = idle_seconds
        self.max_namespaces = max_namespaces
        self._clock = clock
        self._spaces: "OrderedDict[str, Dict[str, str]]" = OrderedDict()
        self._seen: Dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._spaces)

    def _forget(self, namespace: str) -> None:
        self._spaces.pop(namespace, None)
        self._seen.pop(namespace, None)

    def _evict(self) -> None:
        if self.idle_seconds is not None:
            cutoff = self._clock() - self.idle_seconds
            # _spaces is ordered by last visit, so idle namespaces sit at the front
            while self._spaces:
                oldest = next(iter(self._spaces))
                if self._seen.get(oldest, 0) > cutoff:
                    break
                self._forget(oldest)
        if self.max_namespaces is not None:
            while len(self._spaces) > self.max_namespaces:
                evicted = next(iter(self._spaces))
                self._forget(evicted)
                logger.info("storage.memory.evicted", extra={"namespace": evicted})

    def _touch(self, namespace: str) -> None:
        self._spaces.move_to_end(namespace)
        self._seen[namespace] = self._clock()

    def tier(self, namespace: str) -> MemoryStorage:
        self._evict()
        data = self._spaces.get(namespace)
        if data is None:
            data = {}
        else:
            self._touch(namespace)
        return MemoryStorage(data, quota=self.quota, namespace=namespace)

    async def open(self, namespace: str) -> MemoryStorage:
        return self.tier(namespace)

    async def flush(self, tier: StorageTier) -> None:
        namespace = getattr(tier, "namespace", None)
        if namespace is None or not isinstance(tier, MemoryStorage):
            return
        held = self._spaces.get(namespace)
        if not len(tier):
            if held is tier._data or not held:
                self._forget(namespace)
            return
        if held is None:
            self._spaces[namespace] = tier._data
        elif held is not tier._data:
            # another request created the namespace meanwhile
            held.update(tier._data)
        self._touch(namespace)
        self._evict()

    async def drop(self, namespace: str) -> None:
        self._forget(namespace)

    async def close(self) -> None:
        self._spaces.clear()
        self._seen.clear()


class RedisStorageBackend:
    """Durable tier in redis, one hash per namespace: bloomcart:<namespace>.

    `open()` reads the namespace into a BufferedStorage so the stores stay
    synchronous; `flush()` writes the changes back in one pipeline. When
    redis is down the tier comes back disabled and every access raises
    StorageError.
    """

    def __init__(self, client: redis.Redis, ttl_seconds: Optional[int] = None, quota: Optional[int] = None):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.quota = quota

    def _key(self, namespace: str) -> str:
        return build_key(KEY_PREFIX, namespace)

    async def open(self, namespace: str) -> BufferedStorage:
        try:
            data = await self.client.hgetall(self._key(namespace))
        except redis.RedisError as exc:
            logger.warning("storage.redis.open_failed", extra={"namespace": namespace, "error": str(exc)})
            tier = BufferedStorage(namespace, quota=self.quota)
            tier.disabled = True
            return tier
        return BufferedStorage(namespace, dict(data or {}), quota=self.quota)

    async def flush(self, tier: StorageTier) -> None:
        if not isinstance(tier, BufferedStorage) or tier.disabled or not tier.pending:
            return
        key = self._key(tier.namespace)
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                if tier.dirty:
                    pipe.hset(key, mapping={k: tier.get_item(k) for k in tier.dirty})
                if tier.removed:
                    pipe.hdel(key, *tier.removed)
                if self.ttl_seconds and tier.dirty:
                    pipe.expire(key, self.ttl_seconds)
                await pipe.execute()
        except redis.RedisError as exc:
            logger.error("storage.redis.flush_failed", extra={"namespace": tier.namespace, "error": str(exc)})
            return
        tier.dirty.clear()
        tier.removed.clear()

    async def drop(self, namespace: str) -> None:
        try:
            await self.client.delete(self._key(namespace))
        except redis.RedisError as exc:
            logger.warning("storage.redis.drop_failed", extra={"namespace": namespace, "error": str(exc)})

    async def close(self) -> None:
        await self.client.aclose()
