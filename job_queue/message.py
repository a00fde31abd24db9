"""
Message — The serializable unit of work flowing through the queue.

Wire format (one JSON object per list entry):
  {
      "id":           unique message identifier (UUID4),
      "job":          registry name of the handler,
      "payload":      object interpreted only by the handler,
      "attempts":     failed executions so far,
      "max_retries":  executions allowed before dead-lettering,
      "enqueued_at":  RFC 3339 UTC timestamp, set once at creation,
      "metadata":     handler-populated details (omitted when empty),
      "last_error":   text of the last failure (omitted when empty),
  }
"""
from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from job_queue.errors import MessageDecodeError, SerializationError

DEFAULT_MAX_RETRIES = 3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def format_timestamp(value: datetime) -> str:
    """Render a datetime as RFC 3339 in UTC with a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass
class Message:
    """A job invocation as stored in the main and dead-letter lists."""
    job: str
    payload: dict[str, Any] = field(default_factory=dict)
    attempts: int = 0
    max_retries: int = DEFAULT_MAX_RETRIES
    enqueued_at: datetime = field(default_factory=_utcnow)
    metadata: dict[str, Any] = field(default_factory=dict)
    last_error: str = ""
    id: str = field(default_factory=_new_id)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "job": self.job,
            "payload": self.payload,
            "attempts": self.attempts,
            "max_retries": self.max_retries,
            "enqueued_at": format_timestamp(self.enqueued_at),
        }
        if self.metadata:
            data["metadata"] = self.metadata
        if self.last_error:
            data["last_error"] = self.last_error
        return data

    def to_json(self) -> str:
        try:
            return json.dumps(self.to_dict())
        except (TypeError, ValueError) as e:
            raise SerializationError(f"cannot encode message {self.id}: {e}") from e

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        if not isinstance(data, dict):
            raise MessageDecodeError(f"expected a JSON object, got {type(data).__name__}")

        msg_id = _typed(data, "id", str, "")
        job = _typed(data, "job", str, "")
        payload = _typed(data, "payload", dict, None) or {}
        attempts = _typed(data, "attempts", int, 0)
        max_retries = _typed(data, "max_retries", int, DEFAULT_MAX_RETRIES)
        metadata = _typed(data, "metadata", dict, None) or {}
        last_error = _typed(data, "last_error", str, "")

        raw_ts = data.get("enqueued_at")
        if not isinstance(raw_ts, str):
            raise MessageDecodeError("field 'enqueued_at' must be an RFC 3339 string")
        try:
            enqueued_at = parse_timestamp(raw_ts)
        except ValueError as e:
            raise MessageDecodeError(f"field 'enqueued_at': {e}") from e

        return cls(
            id=msg_id,
            job=job,
            payload=payload,
            attempts=attempts,
            max_retries=max_retries,
            enqueued_at=enqueued_at,
            metadata=metadata,
            last_error=last_error,
        )

    @classmethod
    def from_json(cls, raw: str | bytes) -> Message:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise MessageDecodeError(f"invalid message JSON: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def undecodable(cls, raw: str | bytes, error: str) -> Message:
        """Envelope for a raw entry that could not be decoded, kept for operators."""
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        return cls(id="", job="", metadata={"raw": raw}, last_error=error)

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_retries


def _typed(data: dict[str, Any], key: str, expected: type, default: Any) -> Any:
    # JSON null is treated like an absent field
    value = data.get(key)
    if value is None:
        return default
    # bool is an int subclass; reject it for counters
    if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
        raise MessageDecodeError(
            f"field {key!r} must be {expected.__name__}, got {type(value).__name__}"
        )
    return value
