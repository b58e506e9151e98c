# server/tests/unit/test_idempotency_store.py
import json

import pytest
import redis

from play_history.application.services import idempotency
from play_history.application.services.idempotency import (
    InMemoryIdempotencyStore,
    RedisIdempotencyStore,
    build_idempotency_store,
)
from play_history.core.config import Settings
from play_history.core.errors import ServerError

pytestmark = pytest.mark.unit


class FakeRedis:
    """Client Redis minimal : mémorise les SET (avec ex) et sert les GET."""

    def __init__(self):
        self.data = {}
        self.calls = []

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.calls.append((key, value, ex))
        self.data[key] = value
        return True


RESPONSE = {"id": "1", "userId": "u1", "contentId": "c1", "device": "tv",
            "timestamp": "2025-09-30T12:00:00.000Z", "playbackDuration": 5}


# ---------- mémoire ----------

def test_memory_store_get_unknown_returns_none():
    assert InMemoryIdempotencyStore().get("nope") is None


def test_memory_store_put_then_get():
    store = InMemoryIdempotencyStore()
    store.put("k1", RESPONSE)
    assert store.get("k1") == RESPONSE
    assert len(store) == 1


def test_memory_store_last_write_wins():
    store = InMemoryIdempotencyStore()
    store.put("k1", {"id": "1"})
    store.put("k1", {"id": "2"})
    assert store.get("k1") == {"id": "2"}


def test_memory_store_without_ttl_never_expires(monkeypatch):
    store = InMemoryIdempotencyStore()
    store.put("k1", RESPONSE)
    monkeypatch.setattr(idempotency.time, "monotonic", lambda: 10**12)
    assert store.get("k1") == RESPONSE


def test_memory_store_ttl_expires_entries(monkeypatch):
    clock = {"now": 1000.0}
    monkeypatch.setattr(idempotency.time, "monotonic", lambda: clock["now"])

    store = InMemoryIdempotencyStore(ttl_seconds=60)
    store.put("k1", RESPONSE)

    clock["now"] += 59
    assert store.get("k1") == RESPONSE

    clock["now"] += 1
    assert store.get("k1") is None
    assert len(store) == 0


def test_memory_store_clear():
    store = InMemoryIdempotencyStore()
    store.put("a", RESPONSE)
    store.clear()
    assert store.get("a") is None


# ---------- redis ----------

def test_redis_store_sets_with_prefix_and_ttl():
    fake = FakeRedis()
    store = RedisIdempotencyStore(fake, ttl_seconds=86400)
    store.put("abc", RESPONSE)

    key, value, ex = fake.calls[0]
    assert key == "idem:abc"
    assert ex == 86400
    assert json.loads(value) == RESPONSE
    assert store.get("abc") == RESPONSE


def test_redis_store_decodes_bytes_and_handles_miss():
    fake = FakeRedis()
    fake.data["idem:k"] = json.dumps(RESPONSE).encode("utf-8")
    store = RedisIdempotencyStore(fake, ttl_seconds=10)
    assert store.get("k") == RESPONSE
    assert store.get("missing") is None


# ---------- fabrique / singleton ----------

def test_build_store_memory_backend():
    cfg = Settings(IDEMPOTENCY_BACKEND="memory", IDEMPOTENCY_TTL_SECONDS=30)
    store = build_idempotency_store(cfg)
    assert isinstance(store, InMemoryIdempotencyStore)


def test_build_store_redis_backend(monkeypatch):
    seen = {}
    fake = FakeRedis()

    def fake_from_url(url, **kwargs):
        seen["url"] = url
        seen["kwargs"] = kwargs
        return fake

    monkeypatch.setattr(idempotency.redis.Redis, "from_url", staticmethod(fake_from_url))
    cfg = Settings(IDEMPOTENCY_BACKEND="redis", REDIS_URL="redis://cache:6379/3",
                   IDEMPOTENCY_REDIS_TTL_SECONDS=120)
    store = build_idempotency_store(cfg)

    assert isinstance(store, RedisIdempotencyStore)
    assert seen["url"] == "redis://cache:6379/3"
    assert seen["kwargs"].get("decode_responses") is True
    store.put("x", RESPONSE)
    assert fake.calls[0][2] == 120


def test_singleton_is_reused_and_resettable():
    custom = InMemoryIdempotencyStore()
    idempotency.reset_idempotency_store(custom)
    assert idempotency.get_idempotency_store() is custom
    assert idempotency.get_idempotency_store() is custom

    idempotency.reset_idempotency_store(None)
    rebuilt = idempotency.get_idempotency_store()
    assert rebuilt is not custom


# ---------- redis indisponible ----------

class DownRedis(FakeRedis):
    def get(self, key):
        raise redis.ConnectionError("redis down")

    def set(self, key, value, ex=None):
        raise redis.TimeoutError("redis timeout")


@pytest.mark.parametrize("op", ["get", "put"])
def test_redis_errors_surface_as_server_error(op):
    store = RedisIdempotencyStore(DownRedis(), ttl_seconds=60)
    with pytest.raises(ServerError) as ei:
        if op == "get":
            store.get("k")
        else:
            store.put("k", RESPONSE)
    assert ei.value.status_code == 500
    assert isinstance(ei.value.__cause__, redis.RedisError)
