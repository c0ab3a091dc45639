"""Small key/value cache over a Redis server."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

import redis


class RedisCacheError(Exception):
    """Raised when a Redis operation fails."""


@dataclass
class RedisOptions:
    addr: list[str] = field(default_factory=list)
    password: str = ""
    db: int = 0


def _as_timedelta(expiration: float | timedelta | None) -> timedelta | None:
    if expiration is None:
        return None
    if isinstance(expiration, timedelta):
        return expiration
    return timedelta(seconds=expiration)


class RedisCache:
    """String values stored under keys, with optional expiry."""

    def __init__(self, client: Any) -> None:
        self.client = client

    def set(self, key: str, value: Any, expiration: float | timedelta | None = None) -> None:
        """Store str(value); a positive expiration (seconds or timedelta) sets a TTL."""
        ttl = _as_timedelta(expiration)
        ex = ttl if ttl is not None and ttl > timedelta(0) else None
        try:
            self.client.set(key, str(value), ex=ex)
        except redis.RedisError as exc:
            raise RedisCacheError(f"failed to set key in Redis: {exc}") from exc

    def get(self, key: str) -> str:
        """Return the stored value, or an empty string when the key is missing."""
        try:
            value = self.client.get(key)
        except redis.RedisError as exc:
            raise RedisCacheError(f"failed to get key from Redis: {exc}") from exc
        if value is None:
            return ""
        if isinstance(value, bytes):
            try:
                return value.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise RedisCacheError(f"failed to parse get response: {exc}") from exc
        return str(value)

    def delete(self, key: str) -> None:
        try:
            self.client.delete(key)
        except redis.RedisError as exc:
            raise RedisCacheError(f"failed to delete key from Redis: {exc}") from exc

    def exists(self, key: str) -> bool:
        try:
            count = self.client.exists(key)
        except redis.RedisError as exc:
            raise RedisCacheError(f"failed to check if key exists in Redis: {exc}") from exc
        try:
            return int(count) > 0
        except (TypeError, ValueError) as exc:
            raise RedisCacheError(f"failed to parse exists response: {exc}") from exc


def _split_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep or not host:
        raise RedisCacheError(f"failed to create Redis client: invalid address {address!r}")
    try:
        return host, int(port)
    except ValueError as exc:
        raise RedisCacheError(f"failed to create Redis client: invalid port in {address!r}") from exc


def connect(options: RedisOptions) -> RedisCache:
    """Connect to the first configured address, select the database and check it answers."""
    if not options.addr:
        raise RedisCacheError("failed to create Redis client: no address given")
    host, port = _split_address(options.addr[0])
    client = redis.Redis(
        host=host,
        port=port,
        password=options.password or None,
        db=options.db,
        decode_responses=True,
    )
    try:
        client.ping()
    except redis.RedisError as exc:
        if options.db:
            raise RedisCacheError(f"failed to select Redis DB {options.db}: {exc}") from exc
        raise RedisCacheError(f"failed to create Redis client: {exc}") from exc
    return RedisCache(client)