"""
Job Queue — Durable FIFO producer/consumer with retries and dead-lettering.

Keys (namespace-qualified):
  {namespace}:main   producers RPUSH, consumers BLPOP
  {namespace}:dlq    terminally failed messages, RPUSH only

Consume flow for each popped entry:
  decode fails          → DLQ, no retry
  job not registered    → DLQ, no retry
  handler succeeds      → dropped (already removed by the pop)
  handler fails/times out:
      attempts += 1
      attempts >= max_retries → DLQ
      otherwise               → RPUSH to the tail again, no delay

Delivery is at-most-once: a message popped by a worker that dies before the
handler finishes is gone. Several consume loops (tasks or processes) may share
the same keys; the store's atomic pop is the only coordination between them.
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional

import structlog

from job_queue.dead_letter import DeadLetterStore
from job_queue.errors import JobNotRegisteredError, MessageDecodeError, QueueError
from job_queue.message import Message
from job_queue.registry import JobRegistry, RegisteredJob
from job_queue.store import ListStore, RawEntry

logger = structlog.get_logger()

DEFAULT_NAMESPACE = "jobs"
DEFAULT_WAIT_TIME = 5.0
UNREGISTERED_JOB_ERROR = "unregistered job"


class JobQueue:
    """
    Usage:
        queue = JobQueue(store, namespace="jobs")
        queue.register(new_email_send_job(sender))
        await queue.enqueue("email_send", {"to": ..., "subject": ...})
        await queue.consume(stop_event)      # blocks until stopped
    """

    def __init__(
        self,
        store: ListStore,
        namespace: str = DEFAULT_NAMESPACE,
        registry: Optional[JobRegistry] = None,
        wait_time: float = DEFAULT_WAIT_TIME,
    ):
        namespace = namespace or DEFAULT_NAMESPACE
        if wait_time <= 0:
            # BLPOP treats 0 as "block forever", which would hide cancellation
            raise ValueError("wait_time must be positive")
        self._store = store
        self.registry = registry if registry is not None else JobRegistry()
        self.namespace = namespace
        self.queue_key = f"{namespace}:main"
        self.dlq_key = f"{namespace}:dlq"
        self.wait_time = wait_time
        self.dead_letters = DeadLetterStore(store, self.dlq_key)
        self._running = False

    # ── Registration ──────────────────────────────────────────

    def register(self, job: RegisteredJob) -> RegisteredJob:
        return self.registry.register(job)

    def jobs(self) -> list[RegisteredJob]:
        return self.registry.list()

    # ── Producer ──────────────────────────────────────────────

    async def enqueue(self, job_name: str, payload: Optional[dict[str, Any]] = None) -> Message:
        """
        Append a new message for ``job_name`` to the main list.

        Raises:
            JobNotRegisteredError: unknown job; nothing is written.
            SerializationError: payload is not JSON-serializable.
            StoreError: the push failed.
        """
        job = self.registry.get(job_name)
        if job is None:
            raise JobNotRegisteredError(job_name)

        message = Message(
            job=job_name,
            payload=payload if payload is not None else {},
            max_retries=job.max_retries,
        )
        await self._store.rpush(self.queue_key, message.to_json())
        logger.info("job_enqueued",
                    queue=self.queue_key,
                    message_id=message.id,
                    job=job_name)
        return message

    # ── Consumer ──────────────────────────────────────────────

    async def consume(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """
        Process messages until ``stop_event`` is set, stop() is called or the
        task is cancelled. Stop requests are observed between pops, so the
        loop exits within one ``wait_time`` interval; a handler already
        running is allowed to finish (bounded by its own timeout). Cancelling
        the task instead interrupts whatever is in flight.

        Per-message failures never escape; StoreError from the pop does.
        """
        self._running = True
        logger.info("consumer_started", queue=self.queue_key, wait_time=self.wait_time)
        try:
            while self._running and not (stop_event is not None and stop_event.is_set()):
                await self.process_next()
        except asyncio.CancelledError:
            logger.info("consumer_cancelled", queue=self.queue_key)
        finally:
            self._running = False
        logger.info("consumer_stopped", queue=self.queue_key)

    def stop(self) -> None:
        """Ask a running consume() loop to exit after its current wait."""
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def process_next(self, timeout: Optional[float] = None) -> bool:
        """
        Pop and handle a single message. Returns False if no message arrived
        within ``timeout`` seconds (default: the queue's wait_time).
        """
        wait = self.wait_time if timeout is None else timeout
        if wait <= 0:
            raise ValueError("timeout must be positive")

        raw = await self._store.blpop(self.queue_key, wait)
        if raw is None:
            return False
        await self._handle(raw)
        return True

    async def _handle(self, raw: RawEntry) -> None:
        try:
            message = Message.from_json(raw)
        except MessageDecodeError as e:
            logger.warning("message_decode_failed", queue=self.queue_key, error=str(e))
            await self._dead_letter(Message.undecodable(raw, str(e)))
            return

        job = self.registry.get(message.job)
        if job is None:
            logger.warning("message_for_unregistered_job",
                           message_id=message.id,
                           job=message.job)
            message.last_error = UNREGISTERED_JOB_ERROR
            await self._dead_letter(message)
            return

        log = logger.bind(message_id=message.id, job=message.job, attempt=message.attempts + 1)
        error = await self._run_handler(job, message)
        if error is None:
            log.info("job_succeeded")
            return

        message.attempts += 1
        message.last_error = error
        log.warning("job_failed",
                    error=error,
                    attempts=message.attempts,
                    max_retries=message.max_retries)

        if message.exhausted:
            await self._dead_letter(message)
            return

        try:
            await self._store.rpush(self.queue_key, message.to_json())
        except QueueError as e:
            message.last_error = f"requeue failed: {e}"
            await self._dead_letter(message)
            return
        log.info("job_requeued", attempts=message.attempts)

    async def _run_handler(self, job: RegisteredJob, message: Message) -> Optional[str]:
        """
        Run the handler under its deadline. Returns None on success, otherwise
        the failure text to record in ``last_error``.

        A TimeoutError or CancelledError raised by the handler itself is an
        ordinary failure; only the expired deadline produces the timeout text,
        and only cancellation of the consumer task propagates.
        """
        deadline = asyncio.timeout(job.timeout)
        try:
            async with deadline:
                await job.handler(message)
        except asyncio.CancelledError as e:
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
            return str(e) or "job cancelled"
        except Exception as e:
            if isinstance(e, TimeoutError) and deadline.expired():
                return f"job timed out after {job.timeout:g}s"
            return str(e) or type(e).__name__
        return None

    async def _dead_letter(self, message: Message) -> None:
        # best effort: one message's persistence failure must not stop the loop
        try:
            await self.dead_letters.append(message)
        except QueueError as e:
            logger.error("dlq_write_failed",
                         message_id=message.id,
                         job=message.job,
                         last_error=message.last_error,
                         error=str(e))

    # ── Inspection ────────────────────────────────────────────

    async def queue_length(self) -> int:
        return await self._store.llen(self.queue_key)

    async def read_dlq(self, limit: int) -> list[Message]:
        """Up to ``limit`` oldest dead-lettered messages, without removing them."""
        return await self.dead_letters.peek(limit)
