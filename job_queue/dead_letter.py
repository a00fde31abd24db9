"""
Dead-Letter Store — Append-only list of messages that failed terminally.

Entries are never removed by the engine; operators read them with peek() and
purge the list out-of-band.
"""
from __future__ import annotations

import structlog

from job_queue.message import Message
from job_queue.store import ListStore

logger = structlog.get_logger()


class DeadLetterStore:

    def __init__(self, store: ListStore, key: str):
        self._store = store
        self.key = key

    async def append(self, message: Message) -> None:
        """Serialize and push ``message``. Raises SerializationError or StoreError."""
        await self._store.rpush(self.key, message.to_json())
        logger.warning("job_moved_to_dlq",
                       message_id=message.id,
                       job=message.job,
                       attempts=message.attempts,
                       error=message.last_error)

    async def peek(self, limit: int) -> list[Message]:
        """Return up to ``limit`` oldest entries without removing them."""
        if limit <= 0:
            return []
        raw = await self._store.lrange(self.key, 0, limit - 1)
        return [Message.from_json(item) for item in raw]

    async def count(self) -> int:
        return await self._store.llen(self.key)
