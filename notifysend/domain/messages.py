from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator

from notifysend.core.errors import MalformedJobError


GUEST_USER_TYPE = "guest"


class SendQueueMessage(BaseModel):
    # One recipient-scoped send request; re-enqueued copies keep the same fields.
    model_config = ConfigDict(frozen=True)

    notification_id: str
    recipient_id: str
    recipient_type: Literal["user", "team", "channel"]
    conversation_id: str | None = None
    service_url: str | None = None
    user_type: str | None = None

    @field_validator("notification_id", "recipient_id")
    @classmethod
    def _require_identity(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must be non-empty")
        return value

    @field_validator("recipient_type", mode="before")
    @classmethod
    def _normalize_recipient_type(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    def is_recipient_guest_user(self) -> bool:
        return self.recipient_type == "user" and (self.user_type or "").strip().lower() == GUEST_USER_TYPE

    def has_conversation(self) -> bool:
        return bool(self.conversation_id and self.conversation_id.strip())


def parse_send_message(raw: dict[str, Any] | str | bytes) -> SendQueueMessage:
    # Convert every decoding failure into one error class the worker loop never retries.
    try:
        if isinstance(raw, (str, bytes, bytearray)):
            raw = json.loads(raw)
        if not isinstance(raw, dict):
            raise MalformedJobError("send queue payload must be a JSON object")
        return SendQueueMessage.model_validate(raw)
    except ValueError as exc:
        raise MalformedJobError(f"invalid send queue payload: {exc}") from exc
