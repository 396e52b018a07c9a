from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from notifysend.domain.messages import SendQueueMessage
from notifysend.domain.models import PENDING_STATUS_CODES, format_status_history, parse_status_history


class FakeRedis:
    """In-memory stand-in for the Redis commands the throttle coordinator uses."""

    def __init__(self, now_ms: int = 1_700_000_000_000) -> None:
        self._values: dict[str, tuple[str, int | None]] = {}
        self.now_ms = now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += int(seconds * 1000)

    def now_s(self) -> float:
        return self.now_ms / 1000.0

    def _alive(self, key: str) -> bool:
        item = self._values.get(key)
        if item is None:
            return False
        _value, expiry = item
        if expiry is not None and self.now_ms >= expiry:
            self._values.pop(key, None)
            return False
        return True

    def expiry_ms(self, key: str) -> int | None:
        if not self._alive(key):
            return None
        return self._values[key][1]

    async def set(self, key: str, value: str, nx: bool = False, pxat: int | None = None, ex: int | None = None):  # noqa: ANN001
        if nx and self._alive(key):
            return None
        expiry = int(pxat) if pxat is not None else (self.now_ms + int(ex) * 1000 if ex is not None else None)
        self._values[key] = (str(value), expiry)
        return True

    async def exists(self, key: str) -> int:
        return 1 if self._alive(key) else 0

    async def pexpireat(self, key: str, when: int, gt: bool = False) -> bool:
        if not self._alive(key):
            return False
        value, expiry = self._values[key]
        if gt and expiry is not None and int(when) <= expiry:
            return False
        self._values[key] = (value, int(when))
        return True


@dataclass
class FakeJob:
    job_id: str


@dataclass
class FakeArqPool:
    jobs: list[dict[str, Any]] = field(default_factory=list)

    async def enqueue_job(self, function: str, *args: Any, **kwargs: Any) -> FakeJob:
        self.jobs.append({"function": function, "args": args, **kwargs})
        return FakeJob(job_id=f"job-{len(self.jobs)}")


@dataclass
class RecordingQueue:
    delayed: list[tuple[SendQueueMessage, float]] = field(default_factory=list)

    async def send_delayed(self, message: SendQueueMessage, delay_seconds: float) -> str:
        self.delayed.append((message, delay_seconds))
        return f"job-{len(self.delayed)}"


@dataclass
class StoredStatus:
    activity_id: str
    status_code: int
    all_send_status_codes: str
    total_number_of_send_throttles: int
    error_message: str | None
    exception: str | None

    @property
    def status_history(self) -> list[int]:
        return parse_status_history(self.all_send_status_codes)


class InMemoryNotificationService:
    def __init__(self, *, canceled: set[str] | None = None) -> None:
        self.canceled = set(canceled or ())
        self.rows: dict[tuple[str, str], StoredStatus] = {}
        self.writes: list[dict[str, Any]] = []
        self.fail_writes = False

    async def is_notification_canceled(self, message: SendQueueMessage) -> bool:
        return message.notification_id in self.canceled

    async def is_pending_notification(self, message: SendQueueMessage) -> bool:
        row = self.rows.get((message.notification_id, message.recipient_id))
        return row is None or row.status_code in PENDING_STATUS_CODES

    async def update_sent_notification(
        self,
        *,
        notification_id: str,
        recipient_id: str,
        activity_id: str,
        total_number_of_send_throttles: int,
        status_code: int,
        status_codes: list[int] | tuple[int, ...],
        error_message: str | None,
        exception: str | None = None,
    ) -> None:
        if self.fail_writes:
            raise RuntimeError("status store unavailable")
        self.writes.append(
            {
                "notification_id": notification_id,
                "recipient_id": recipient_id,
                "status_code": status_code,
                "status_codes": tuple(status_codes),
            }
        )
        key = (notification_id, recipient_id)
        previous = self.rows.get(key)
        history = (previous.all_send_status_codes if previous else "") + format_status_history(status_codes)
        self.rows[key] = StoredStatus(
            activity_id=activity_id,
            status_code=status_code,
            all_send_status_codes=history,
            total_number_of_send_throttles=total_number_of_send_throttles,
            error_message=error_message,
            exception=exception,
        )


class StaticRenderer:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[str] = []

    async def render(self, notification_id: str, message: SendQueueMessage) -> dict[str, Any]:
        self.calls.append(notification_id)
        if self.error is not None:
            raise self.error
        return {"type": "message", "summary": notification_id}
