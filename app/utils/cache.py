"""Small TTL cache used by the device client for server-issued values.

Entries always live in process memory. When a Redis URL is supplied they are
also written through to Redis so several client processes on one host can
share them; a Redis failure disables the remote side for the rest of the
process lifetime.
"""

from __future__ import annotations

import importlib
import importlib.util
import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger

_redis_module = None
if importlib.util.find_spec("redis") is not None:
    _redis_module = importlib.import_module("redis")


@dataclass
class _CacheEntry:
    expires_at: float | None
    payload: str


class CacheBackend:
    def __init__(
        self,
        redis_url: str | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, _CacheEntry] = {}
        self._clock = clock
        self._redis = None
        if redis_url and _redis_module is not None:
            self._redis = _redis_module.Redis.from_url(redis_url, decode_responses=True)

    @staticmethod
    def _key(namespace: str, key: str) -> str:
        return f"{namespace}:{key}"

    def _drop_remote(self, operation: str, exc: Exception) -> None:
        logger.warning("Redis cache unavailable, using memory only", operation=operation, error=str(exc))
        self._redis = None

    def get(self, namespace: str, key: str) -> Any | None:
        full_key = self._key(namespace, key)
        if self._redis is not None:
            try:
                remote = self._redis.get(full_key)
            except _redis_module.RedisError as exc:
                self._drop_remote("get", exc)
            else:
                if remote is not None:
                    return json.loads(remote)

        with self._lock:
            entry = self._entries.get(full_key)
            if entry is None:
                return None
            if entry.expires_at is not None and entry.expires_at <= self._clock():
                del self._entries[full_key]
                return None
            return json.loads(entry.payload)

    def set(self, namespace: str, key: str, value: Any, ttl_seconds: int) -> None:
        """Store ``value``; a ``ttl_seconds`` of 0 keeps it until invalidated."""

        full_key = self._key(namespace, key)
        payload = json.dumps(value)
        if self._redis is not None:
            try:
                self._redis.set(full_key, payload, ex=ttl_seconds or None)
            except _redis_module.RedisError as exc:
                self._drop_remote("set", exc)

        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        with self._lock:
            self._entries[full_key] = _CacheEntry(expires_at=expires_at, payload=payload)

    def invalidate(self, namespace: str, key: str) -> None:
        full_key = self._key(namespace, key)
        if self._redis is not None:
            try:
                self._redis.delete(full_key)
            except _redis_module.RedisError as exc:
                self._drop_remote("invalidate", exc)
        with self._lock:
            self._entries.pop(full_key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


__all__ = ["CacheBackend"]
