from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


class SendMessageResult(str, Enum):
    SUCCEEDED = "succeeded"
    THROTTLED = "throttled"
    FAILED = "failed"


@dataclass
class SendMessageResponse:
    result_type: SendMessageResult
    status_code: int
    activity_id: str | None = None
    error_message: str | None = None
    total_throttles: int = 0
    # Every HTTP status observed during the call, including intermediate 429s.
    status_codes: list[int] = field(default_factory=list)


class MessagingTransport(Protocol):
    async def send(
        self,
        payload: dict[str, Any],
        *,
        service_url: str,
        conversation_id: str,
        max_attempts: int,
    ) -> SendMessageResponse:
        ...
