from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from notifysend.core.errors import MalformedJobError
from notifysend.domain.models import FAULTED_AND_RETRYING_STATUS_CODE, FINAL_FAULTED_STATUS_CODE


class FailureAction(str, Enum):
    # Log and drop; the job can never succeed.
    LOG_ONLY = "log_only"
    # Record faulted-and-retrying and hand the job back to the queue.
    RETRY = "retry"
    # Record final-faulted and swallow the error.
    DEAD_LETTER = "dead_letter"


@dataclass(frozen=True)
class FailureDecision:
    action: FailureAction
    status_code: int | None


_STATUS_BY_ACTION: dict[FailureAction, int | None] = {
    FailureAction.LOG_ONLY: None,
    FailureAction.RETRY: FAULTED_AND_RETRYING_STATUS_CODE,
    FailureAction.DEAD_LETTER: FINAL_FAULTED_STATUS_CODE,
}

# (error class, action below the delivery threshold, action at or past it); first match wins.
FAILURE_POLICY: tuple[tuple[type[Exception], FailureAction, FailureAction], ...] = (
    (MalformedJobError, FailureAction.LOG_ONLY, FailureAction.LOG_ONLY),
)
# Anything unlisted is an unexpected crash handed to queue redelivery.
DEFAULT_POLICY: tuple[FailureAction, FailureAction] = (FailureAction.RETRY, FailureAction.DEAD_LETTER)


def decide_failure(exc: Exception, *, delivery_count: int, max_delivery_count: int) -> FailureDecision:
    exhausted = int(delivery_count) >= int(max_delivery_count)
    below, at_threshold = DEFAULT_POLICY
    for error_class, class_below, class_at_threshold in FAILURE_POLICY:
        if isinstance(exc, error_class):
            below, at_threshold = class_below, class_at_threshold
            break
    action = at_threshold if exhausted else below
    return FailureDecision(action=action, status_code=_STATUS_BY_ACTION[action])
