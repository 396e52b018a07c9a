from __future__ import annotations

import logging

from notifysend.domain.messages import SendQueueMessage
from notifysend.services.localization import get_string
from notifysend.services.notification_service import NotificationService
from notifysend.services.send.outcomes import DeliveryOutcome, OutcomeKind
from notifysend.services.send.queue import SendQueue
from notifysend.services.telemetry import increment_counter
from notifysend.services.throttle import ThrottleCoordinator


logger = logging.getLogger(__name__)


class Reconciler:
    def __init__(
        self,
        *,
        notification_service: NotificationService,
        throttle: ThrottleCoordinator,
        queue: SendQueue,
        retry_delay_seconds: float,
    ) -> None:
        self._notifications = notification_service
        self._throttle = throttle
        self._queue = queue
        self._retry_delay_seconds = retry_delay_seconds

    async def apply(self, message: SendQueueMessage, outcome: DeliveryOutcome) -> None:
        if outcome.kind is OutcomeKind.SUCCEEDED:
            logger.info(
                "send_message_succeeded notification_id=%s recipient_id=%s activity_id=%s",
                message.notification_id,
                message.recipient_id,
                outcome.activity_id,
            )
            increment_counter("send_succeeded_total")
            error_message = None
        else:
            logger.error(
                "send_message_failed notification_id=%s recipient_id=%s result=%s status_code=%s error=%s",
                message.notification_id,
                message.recipient_id,
                outcome.kind.value,
                outcome.status_code,
                outcome.error_message,
            )
            increment_counter(f"send_{outcome.kind.value}_total")
            error_message = get_string("Failed")

        await self._notifications.update_sent_notification(
            notification_id=message.notification_id,
            recipient_id=message.recipient_id,
            activity_id=outcome.activity_id or "",
            total_number_of_send_throttles=outcome.throttle_count,
            status_code=outcome.status_code,
            status_codes=outcome.history_fragment(),
            error_message=error_message,
            exception=outcome.error_message,
        )

        if outcome.kind is OutcomeKind.THROTTLED:
            await self._throttle.set_throttled(self._retry_delay_seconds)
            await self._queue.send_delayed(message, self._retry_delay_seconds)

    async def record_terminal(
        self,
        message: SendQueueMessage,
        *,
        status_code: int,
        error_message: str | None,
        exception: str | None = None,
    ) -> None:
        # Sentinel outcomes that never reached the transport carry exactly one history code.
        await self._notifications.update_sent_notification(
            notification_id=message.notification_id,
            recipient_id=message.recipient_id,
            activity_id="",
            total_number_of_send_throttles=0,
            status_code=status_code,
            status_codes=(status_code,),
            error_message=error_message,
            exception=exception,
        )
