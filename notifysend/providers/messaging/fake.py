from __future__ import annotations

from typing import Any

from notifysend.providers.messaging.base import SendMessageResponse, SendMessageResult


class FakeMessagingTransport:
    def __init__(self, responses: list[SendMessageResponse | Exception] | None = None) -> None:
        # Scripted responses are consumed in order; an empty script always succeeds.
        self._responses = list(responses or [])
        self.calls: list[dict[str, Any]] = []

    async def send(
        self,
        payload: dict[str, Any],
        *,
        service_url: str,
        conversation_id: str,
        max_attempts: int,
    ) -> SendMessageResponse:
        self.calls.append(
            {
                "payload": payload,
                "service_url": service_url,
                "conversation_id": conversation_id,
                "max_attempts": max_attempts,
            }
        )
        if self._responses:
            scripted = self._responses.pop(0)
            if isinstance(scripted, Exception):
                raise scripted
            return scripted
        return SendMessageResponse(
            result_type=SendMessageResult.SUCCEEDED,
            status_code=201,
            activity_id=f"fake-activity-{len(self.calls)}",
            status_codes=[201],
        )
