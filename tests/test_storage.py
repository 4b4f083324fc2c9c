import pytest
import redis.asyncio as redis
from starlette.responses import Response
from storefront.common.custom_exceptions import StorageError
from storefront.storage.cookies import MemoryCookieJar, ResponseCookieJar
from storefront.storage.tiers import MemoryStorage, MemoryStorageBackend, RedisStorageBackend


class FakePipeline:
    def __init__(self, server):
        self.server = server
        self.ops = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def hset(self, key, mapping):
        self.ops.append(("hset", key, mapping))

    def hdel(self, key, *fields):
        self.ops.append(("hdel", key, fields))

    def expire(self, key, seconds):
        self.ops.append(("expire", key, seconds))

    async def execute(self):
        if self.server.down:
            raise redis.ConnectionError("redis down")
        for op, key, arg in self.ops:
            if op == "hset":
                self.server.data.setdefault(key, {}).update(arg)
            elif op == "hdel":
                fields = self.server.data.get(key, {})
                for field in arg:
                    fields.pop(field, None)
                if not fields:
                    self.server.data.pop(key, None)
            else:
                self.server.expiries[key] = arg


class FakeRedis:
    """Just the redis.asyncio surface RedisStorageBackend touches."""

    def __init__(self):
        self.data = {}
        self.expiries = {}
        self.down = False
        self.closed = False
        self.commands = []

    async def hgetall(self, key):
        self.commands.append(("hgetall", key))
        if self.down:
            raise redis.ConnectionError("redis down")
        return dict(self.data.get(key, {}))

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def delete(self, *keys):
        for k in keys:
            self.data.pop(k, None)

    async def aclose(self):
        self.closed = True


def test_memory_storage_quota_and_disable():
    tier = MemoryStorage(quota=1)
    tier.set_item("a", "1")
    tier.set_item("a", "2")
    with pytest.raises(StorageError):
        tier.set_item("b", "1")

    tier.disabled = True
    with pytest.raises(StorageError):
        tier.get_item("a")


@pytest.mark.asyncio
async def test_memory_backend_shares_a_namespace():
    backend = MemoryStorageBackend()
    tier = await backend.open("dev-1")
    tier.set_item("k", "v")
    await backend.flush(tier)

    assert (await backend.open("dev-1")).get_item("k") == "v"
    assert (await backend.open("dev-2")).get_item("k") is None

    await backend.drop("dev-1")
    assert (await backend.open("dev-1")).get_item("k") is None


@pytest.mark.asyncio
async def test_memory_backend_keeps_no_empty_namespaces():
    backend = MemoryStorageBackend()
    for n in range(50):
        await backend.flush(await backend.open(f"tab-{n}"))
    assert len(backend) == 0

    tier = await backend.open("tab-1")
    tier.set_item("user_session", "{}")
    await backend.flush(tier)
    assert len(backend) == 1

    again = await backend.open("tab-1")
    again.remove_item("user_session")
    await backend.flush(again)
    assert len(backend) == 0


@pytest.mark.asyncio
async def test_memory_backend_forgets_idle_and_least_recent_namespaces():
    now = [0.0]
    backend = MemoryStorageBackend(idle_seconds=60, max_namespaces=2, clock=lambda: now[0])

    async def write(namespace):
        tier = await backend.open(namespace)
        tier.set_item("guest-cart", "[]")
        await backend.flush(tier)

    await write("dev-a")
    await write("dev-b")
    now[0] = 10
    assert (await backend.open("dev-a")).get_item("guest-cart") == "[]"
    await write("dev-c")
    assert len(backend) == 2
    assert (await backend.open("dev-b")).get_item("guest-cart") is None
    assert (await backend.open("dev-a")).get_item("guest-cart") == "[]"

    now[0] = 100
    await write("dev-d")
    assert len(backend) == 1
    assert (await backend.open("dev-a")).get_item("guest-cart") is None


@pytest.mark.asyncio
async def test_redis_backend_round_trip():
    server = FakeRedis()
    backend = RedisStorageBackend(server, ttl_seconds=3600)

    tier = await backend.open("dev-1")
    tier.set_item("guest-cart", "[]")
    tier.set_item("user_session", "{}")
    await backend.flush(tier)

    assert server.data == {"bloomcart:dev-1": {"guest-cart": "[]", "user_session": "{}"}}
    assert server.expiries["bloomcart:dev-1"] == 3600

    again = await backend.open("dev-1")
    assert again.get_item("guest-cart") == "[]"
    again.remove_item("user_session")
    await backend.flush(again)
    assert server.data == {"bloomcart:dev-1": {"guest-cart": "[]"}}

    await backend.drop("dev-1")
    assert server.data == {}
    await backend.close()
    assert server.closed


@pytest.mark.asyncio
async def test_redis_namespaces_are_read_by_exact_key():
    server = FakeRedis()
    backend = RedisStorageBackend(server)
    victim = await backend.open("A" * 24)
    victim.set_item("user_session", '{"token": "tok-asha"}')
    await backend.flush(victim)

    for pattern in ("?" * 24, "*", "[A]" * 8):
        tier = await backend.open(pattern)
        assert tier.get_item("user_session") is None
    assert ("hgetall", "bloomcart:" + "?" * 24) in server.commands


@pytest.mark.asyncio
async def test_redis_outage_surfaces_as_storage_error():
    server = FakeRedis()
    server.down = True
    backend = RedisStorageBackend(server)

    tier = await backend.open("dev-1")

    with pytest.raises(StorageError):
        tier.get_item("guest-cart")


@pytest.mark.asyncio
async def test_failed_flush_keeps_pending_changes():
    server = FakeRedis()
    backend = RedisStorageBackend(server)
    tier = await backend.open("dev-1")
    tier.set_item("guest-cart", "[]")

    server.down = True
    await backend.flush(tier)

    assert tier.pending
    assert server.data == {}


def test_memory_cookie_jar_expires_on_non_positive_days():
    jar = MemoryCookieJar({"auth_token": "t"})
    jar.set("auth_token", "", days=-1)
    assert jar.get("auth_token") is None


def test_response_cookie_jar_writes_set_cookie_headers():
    response = Response()
    jar = ResponseCookieJar({"refresh_token": "old"}, response)

    jar.set("auth_token", "tok", days=7, samesite="strict")
    jar.delete("refresh_token")

    assert jar.get("auth_token") == "tok"
    assert jar.get("refresh_token") is None
    headers = response.headers.getlist("set-cookie")
    assert any(h.startswith("auth_token=tok") and "Max-Age=604800" in h and "SameSite=strict" in h
               for h in headers)
    assert any(h.startswith("refresh_token=") and "Max-Age=0" in h for h in headers)
