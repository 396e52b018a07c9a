from __future__ import annotations

from notifysend.core.errors import MalformedJobError, TransportError
from notifysend.domain.models import FAULTED_AND_RETRYING_STATUS_CODE, FINAL_FAULTED_STATUS_CODE
from notifysend.services.send.policy import FailureAction, decide_failure


def test_unexpected_error_below_threshold_retries() -> None:
    decision = decide_failure(RuntimeError("boom"), delivery_count=9, max_delivery_count=10)
    assert decision.action is FailureAction.RETRY
    assert decision.status_code == FAULTED_AND_RETRYING_STATUS_CODE


def test_unexpected_error_at_threshold_dead_letters() -> None:
    decision = decide_failure(TransportError("down"), delivery_count=10, max_delivery_count=10)
    assert decision.action is FailureAction.DEAD_LETTER
    assert decision.status_code == FINAL_FAULTED_STATUS_CODE


def test_malformed_job_is_log_only_regardless_of_count() -> None:
    for count in (1, 10, 11):
        decision = decide_failure(MalformedJobError("bad"), delivery_count=count, max_delivery_count=10)
        assert decision.action is FailureAction.LOG_ONLY
        assert decision.status_code is None
