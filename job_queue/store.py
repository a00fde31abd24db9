"""
List Store — Durable list primitives the queue engine is built on.

Only the operations the engine needs are exposed:
  rpush   append to the tail
  blpop   pop from the head, waiting up to ``timeout`` seconds
  lrange  non-destructive ranged read (inclusive stop, negative = from end)
  llen    list length

Entries come back as ``str`` or ``bytes`` depending on the backend; the
Redis store returns raw bytes so that decoding (and failing to decode) is left
to Message.from_json.

Backends:
  RedisListStore     production, shared by every worker on the same keys
  InMemoryListStore  development/tests, single process only
"""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from typing import Any, Optional, Union

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from job_queue.errors import StoreError

logger = structlog.get_logger()

RawEntry = Union[str, bytes]


class ListStore(ABC):
    """Abstract list store interface."""

    @abstractmethod
    async def connect(self):
        """Establish connection to the backend."""
        ...

    @abstractmethod
    async def close(self):
        """Release backend resources."""
        ...

    @abstractmethod
    async def rpush(self, key: str, value: str) -> int:
        """Append ``value`` to the tail of ``key``; returns the new length."""
        ...

    @abstractmethod
    async def blpop(self, key: str, timeout: float) -> Optional[RawEntry]:
        """Pop the head of ``key``, or return None once ``timeout`` elapses."""
        ...

    @abstractmethod
    async def lrange(self, key: str, start: int, stop: int) -> list[RawEntry]:
        ...

    @abstractmethod
    async def llen(self, key: str) -> int:
        ...


# ──────────────────────────────────────────────────────────────
#  Redis Implementation
# ──────────────────────────────────────────────────────────────

class RedisListStore(ListStore):
    """
    Lists stored in Redis. BLPOP is atomic, so any number of consumers may
    pop from the same key; that is the only coordination between workers.
    """

    def __init__(self, redis_url: str = "redis://localhost:6379", client: Any = None):
        self._redis_url = redis_url
        self._redis = client

    async def connect(self):
        if self._redis is None:
            # entries stay bytes; Message.from_json owns decoding
            self._redis = aioredis.from_url(self._redis_url)
        try:
            await self._redis.ping()
        except RedisError as e:
            raise StoreError(f"redis unavailable at {self._redis_url}: {e}") from e
        logger.info("redis_store_connected", url=self._redis_url)

    async def close(self):
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    def _client(self):
        if self._redis is None:
            raise StoreError("redis store is not connected")
        return self._redis

    async def rpush(self, key: str, value: str) -> int:
        try:
            return await self._client().rpush(key, value)
        except RedisError as e:
            raise StoreError(f"RPUSH {key} failed: {e}") from e

    async def blpop(self, key: str, timeout: float) -> Optional[RawEntry]:
        try:
            result = await self._client().blpop([key], timeout=timeout)
        except RedisTimeoutError:
            # socket timeout while blocking; treated like an empty wait window
            return None
        except RedisError as e:
            raise StoreError(f"BLPOP {key} failed: {e}") from e
        if not result:
            return None
        _, value = result
        return value

    async def lrange(self, key: str, start: int, stop: int) -> list[RawEntry]:
        try:
            return await self._client().lrange(key, start, stop)
        except RedisError as e:
            raise StoreError(f"LRANGE {key} failed: {e}") from e

    async def llen(self, key: str) -> int:
        try:
            return await self._client().llen(key)
        except RedisError as e:
            raise StoreError(f"LLEN {key} failed: {e}") from e


# ──────────────────────────────────────────────────────────────
#  In-Memory Implementation (Development)
# ──────────────────────────────────────────────────────────────

class InMemoryListStore(ListStore):
    """
    Development/test store backed by deques and an asyncio.Condition.
    Single-process only; nothing survives a restart.
    """

    def __init__(self):
        self._lists: dict[str, deque[str]] = defaultdict(deque)
        self._changed = asyncio.Condition()

    async def connect(self):
        logger.info("inmemory_store_connected")

    async def close(self):
        pass

    async def rpush(self, key: str, value: str) -> int:
        async with self._changed:
            self._lists[key].append(value)
            self._changed.notify_all()
            return len(self._lists[key])

    async def blpop(self, key: str, timeout: float) -> Optional[RawEntry]:
        async with self._changed:
            try:
                await asyncio.wait_for(
                    self._changed.wait_for(lambda: bool(self._lists[key])),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                return None
            return self._lists[key].popleft()

    async def lrange(self, key: str, start: int, stop: int) -> list[RawEntry]:
        items = list(self._lists.get(key, ()))
        if stop < 0:
            stop = len(items) + stop
        return items[start:stop + 1]

    async def llen(self, key: str) -> int:
        return len(self._lists.get(key, ()))


# ──────────────────────────────────────────────────────────────
#  Factory
# ──────────────────────────────────────────────────────────────

def create_list_store(queue_config: Any = None) -> ListStore:
    """Factory: create the store backend named by ``queue_config.backend``."""
    backend = getattr(queue_config, "backend", "memory")

    if backend == "redis":
        return RedisListStore(redis_url=queue_config.redis_url)
    if backend == "memory":
        return InMemoryListStore()
    raise ValueError(f"unknown queue backend: {backend}")
