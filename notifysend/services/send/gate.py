from __future__ import annotations

import logging

from notifysend.domain.messages import SendQueueMessage
from notifysend.domain.models import FINAL_FAULTED_STATUS_CODE, NOT_SUPPORTED_STATUS_CODE
from notifysend.services.localization import get_string
from notifysend.services.notification_service import NotificationService
from notifysend.services.send.outcomes import GateAction, GateDecision
from notifysend.services.throttle import ThrottleCoordinator


logger = logging.getLogger(__name__)

PROCEED = GateDecision(action=GateAction.PROCEED, reason="clear")


class DeliveryGate:
    def __init__(
        self,
        *,
        notification_service: NotificationService,
        throttle: ThrottleCoordinator,
        retry_delay_seconds: float,
    ) -> None:
        self._notifications = notification_service
        self._throttle = throttle
        self._retry_delay_seconds = retry_delay_seconds

    async def evaluate(self, message: SendQueueMessage) -> GateDecision:
        # Checks run in a fixed order and the first match wins.
        if await self._notifications.is_notification_canceled(message):
            return GateDecision(action=GateAction.SKIP, reason="canceled")

        if message.is_recipient_guest_user():
            return GateDecision(
                action=GateAction.TERMINAL_FAILURE,
                reason="guest_user",
                status_code=NOT_SUPPORTED_STATUS_CODE,
                error_message=get_string("GuestUserNotSupported"),
            )

        if not await self._notifications.is_pending_notification(message):
            # Already sent or permanently failed; a duplicate re-enqueue lands here.
            return GateDecision(action=GateAction.SKIP, reason="already_resolved")

        if not message.has_conversation() or not (message.service_url or "").strip():
            return GateDecision(
                action=GateAction.TERMINAL_FAILURE,
                reason="missing_conversation",
                status_code=FINAL_FAULTED_STATUS_CODE,
                error_message=get_string("AppNotInstalled"),
            )

        if await self._throttle.is_throttled():
            return GateDecision(
                action=GateAction.RESCHEDULE,
                reason="throttled",
                delay_seconds=self._retry_delay_seconds,
            )

        return PROCEED
