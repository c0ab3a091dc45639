from datetime import timedelta
from unittest import mock

import pytest
import redis

from shopnexus.rediscache import RedisCache, RedisCacheError, RedisOptions, connect


class FakeRedis:
    def __init__(self):
        self.data = {}
        self.expiries = {}

    def set(self, key, value, ex=None):
        self.data[key] = value.encode("utf-8")
        self.expiries[key] = ex
        return True

    def get(self, key):
        return self.data.get(key)

    def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0

    def exists(self, key):
        return 1 if key in self.data else 0


class BrokenRedis:
    def _fail(self, *args, **kwargs):
        raise redis.ConnectionError("down")

    set = get = delete = exists = _fail


def test_set_get_round_trip():
    cache = RedisCache(FakeRedis())
    cache.set("answer", 42)
    assert cache.get("answer") == "42"


def test_missing_key_gives_empty_string():
    assert RedisCache(FakeRedis()).get("nothing") == ""


def test_expiration_passed_only_when_positive():
    fake = FakeRedis()
    cache = RedisCache(fake)
    cache.set("a", "x", 30)
    cache.set("b", "y", 0)
    cache.set("c", "z", timedelta(minutes=2))
    assert fake.expiries == {"a": timedelta(seconds=30), "b": None, "c": timedelta(minutes=2)}


def test_exists_and_delete():
    cache = RedisCache(FakeRedis())
    cache.set("k", "v")
    assert cache.exists("k") is True
    cache.delete("k")
    assert cache.exists("k") is False
    assert cache.get("k") == ""


@pytest.mark.parametrize(
    "call",
    [
        lambda c: c.set("k", "v"),
        lambda c: c.get("k"),
        lambda c: c.delete("k"),
        lambda c: c.exists("k"),
    ],
)
def test_errors_are_wrapped(call):
    with pytest.raises(RedisCacheError, match="Redis"):
        call(RedisCache(BrokenRedis()))


def test_connect_requires_address():
    with pytest.raises(RedisCacheError, match="no address"):
        connect(RedisOptions())


def test_connect_rejects_bad_port():
    with pytest.raises(RedisCacheError, match="invalid port"):
        connect(RedisOptions(addr=["localhost:abc"]))


def test_connect_uses_first_address_and_pings():
    password = "password"
    with mock.patch("redis.Redis") as factory:
        cache = connect(RedisOptions(addr=["cache.example.com:6380", "other:1"], password=password, db=2))
    factory.assert_called_once_with(
        host="cache.example.com", port=6380, password=password, db=2, decode_responses=True
    )
    factory.return_value.ping.assert_called_once_with()
    assert cache.client is factory.return_value


def test_connect_failure_reports_db():
    with mock.patch("redis.Redis") as factory:
        factory.return_value.ping.side_effect = redis.ConnectionError("refused")
        with pytest.raises(RedisCacheError, match="failed to select Redis DB 3"):
            connect(RedisOptions(addr=["localhost:6379"], db=3))