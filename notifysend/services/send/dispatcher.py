from __future__ import annotations

import logging
from typing import Any

from notifysend.domain.messages import SendQueueMessage
from notifysend.providers.messaging.base import MessagingTransport, SendMessageResponse, SendMessageResult
from notifysend.services.send.outcomes import DeliveryOutcome, OutcomeKind


logger = logging.getLogger(__name__)

_KIND_BY_RESULT = {
    SendMessageResult.SUCCEEDED: OutcomeKind.SUCCEEDED,
    SendMessageResult.THROTTLED: OutcomeKind.THROTTLED,
    SendMessageResult.FAILED: OutcomeKind.FAILED,
}


def classify_response(response: SendMessageResponse) -> DeliveryOutcome:
    kind = _KIND_BY_RESULT.get(response.result_type, OutcomeKind.FAILED)
    throttle_count = int(response.total_throttles)
    if kind is OutcomeKind.THROTTLED:
        # A throttled result always counts at least the final 429.
        throttle_count = max(1, throttle_count)
    return DeliveryOutcome(
        kind=kind,
        status_code=int(response.status_code),
        status_codes=tuple(int(code) for code in response.status_codes),
        activity_id=response.activity_id if kind is OutcomeKind.SUCCEEDED else None,
        error_message=response.error_message,
        throttle_count=throttle_count,
    )


class Dispatcher:
    def __init__(self, *, transport: MessagingTransport, max_attempts: int) -> None:
        self._transport = transport
        self._max_attempts = max(1, int(max_attempts))

    async def dispatch(self, payload: dict[str, Any], message: SendQueueMessage) -> DeliveryOutcome:
        # Transport exceptions propagate; the worker loop's failure policy owns them.
        response = await self._transport.send(
            payload,
            service_url=message.service_url or "",
            conversation_id=message.conversation_id or "",
            max_attempts=self._max_attempts,
        )
        return classify_response(response)
