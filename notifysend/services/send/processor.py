from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from notifysend.domain.messages import SendQueueMessage, parse_send_message
from notifysend.services.localization import get_string
from notifysend.services.rendering import MessageRenderer
from notifysend.services.send.dispatcher import Dispatcher
from notifysend.services.send.gate import DeliveryGate
from notifysend.services.send.outcomes import GateAction, WorkerState
from notifysend.services.send.policy import FailureAction, FailureDecision, decide_failure
from notifysend.services.send.queue import SendQueue
from notifysend.services.send.reconciler import Reconciler
from notifysend.services.telemetry import increment_counter


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    state: WorkerState
    message: SendQueueMessage | None = None
    decision: FailureDecision | None = None
    error: Exception | None = None

    @property
    def should_redeliver(self) -> bool:
        return self.state is WorkerState.RETRYING


class SendProcessor:
    """Runs one dequeued send job through gate, dispatch and reconciliation.

    Every outcome is returned as a ``ProcessResult``. The only state that asks the
    queue platform to act is ``RETRYING``; the caller maps it to the platform's
    redelivery mechanism. Terminal and no-op outcomes are fully absorbed here.
    """

    def __init__(
        self,
        *,
        gate: DeliveryGate,
        renderer: MessageRenderer,
        dispatcher: Dispatcher,
        reconciler: Reconciler,
        queue: SendQueue,
        max_delivery_count: int,
    ) -> None:
        self._gate = gate
        self._renderer = renderer
        self._dispatcher = dispatcher
        self._reconciler = reconciler
        self._queue = queue
        self._max_delivery_count = max_delivery_count

    async def process(self, payload: dict[str, Any] | str | bytes, *, delivery_count: int) -> ProcessResult:
        message: SendQueueMessage | None = None
        try:
            message = parse_send_message(payload)
            logger.info(
                "send_job_received notification_id=%s recipient_id=%s delivery_count=%s",
                message.notification_id,
                message.recipient_id,
                delivery_count,
            )
            return await self._run(message)
        except Exception as exc:  # noqa: BLE001 - every failure is classified by the policy table.
            return await self._handle_failure(exc, message=message, delivery_count=delivery_count)

    async def _run(self, message: SendQueueMessage) -> ProcessResult:
        decision = await self._gate.evaluate(message)

        if decision.action is GateAction.SKIP:
            logger.info(
                "send_job_skipped notification_id=%s recipient_id=%s reason=%s",
                message.notification_id,
                message.recipient_id,
                decision.reason,
            )
            increment_counter(f"send_skipped_total.{decision.reason}")
            return ProcessResult(state=WorkerState.SKIPPED, message=message)

        if decision.action is GateAction.TERMINAL_FAILURE:
            await self._reconciler.record_terminal(
                message,
                status_code=int(decision.status_code),
                error_message=decision.error_message,
            )
            logger.warning(
                "send_job_terminal notification_id=%s recipient_id=%s reason=%s status_code=%s",
                message.notification_id,
                message.recipient_id,
                decision.reason,
                decision.status_code,
            )
            return ProcessResult(state=WorkerState.TERMINAL_FAILED, message=message)

        if decision.action is GateAction.RESCHEDULE:
            # No status write while the system is throttled; the copy is gated again later.
            await self._queue.send_delayed(message, decision.delay_seconds)
            increment_counter("send_rescheduled_total")
            return ProcessResult(state=WorkerState.RESCHEDULED, message=message)

        payload = await self._renderer.render(message.notification_id, message)
        outcome = await self._dispatcher.dispatch(payload, message)
        await self._reconciler.apply(message, outcome)
        return ProcessResult(state=WorkerState.DISPATCHED, message=message)

    async def _handle_failure(
        self,
        exc: Exception,
        *,
        message: SendQueueMessage | None,
        delivery_count: int,
    ) -> ProcessResult:
        decision = decide_failure(exc, delivery_count=delivery_count, max_delivery_count=self._max_delivery_count)

        if decision.action is FailureAction.LOG_ONLY or message is None:
            logger.error("send_job_malformed error=%s", exc, exc_info=exc)
            increment_counter("send_malformed_total")
            return ProcessResult(state=WorkerState.MALFORMED, decision=decision, error=exc)

        logger.error(
            "send_job_crashed notification_id=%s recipient_id=%s delivery_count=%s action=%s error=%s: %s",
            message.notification_id,
            message.recipient_id,
            delivery_count,
            decision.action.value,
            type(exc).__name__,
            exc,
            exc_info=exc,
        )
        increment_counter(f"send_crashed_total.{decision.action.value}")
        try:
            await self._reconciler.record_terminal(
                message,
                status_code=int(decision.status_code),
                error_message=get_string("Failed"),
                exception=f"{type(exc).__name__}: {exc}",
            )
        except Exception:  # noqa: BLE001 - the original failure still decides redelivery.
            logger.exception(
                "send_crash_status_write_failed notification_id=%s recipient_id=%s",
                message.notification_id,
                message.recipient_id,
            )

        if decision.action is FailureAction.RETRY:
            return ProcessResult(state=WorkerState.RETRYING, message=message, decision=decision, error=exc)
        return ProcessResult(state=WorkerState.DEAD_LETTERED, message=message, decision=decision, error=exc)
