from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class GateAction(str, Enum):
    PROCEED = "proceed"
    SKIP = "skip"
    RESCHEDULE = "reschedule"
    TERMINAL_FAILURE = "terminal_failure"


@dataclass(frozen=True)
class GateDecision:
    action: GateAction
    reason: str
    delay_seconds: float = 0.0
    status_code: int | None = None
    error_message: str | None = None


class OutcomeKind(str, Enum):
    SUCCEEDED = "succeeded"
    THROTTLED = "throttled"
    FAILED = "failed"


@dataclass(frozen=True)
class DeliveryOutcome:
    kind: OutcomeKind
    status_code: int
    # Codes observed during this attempt, oldest first; appended to the recipient's history.
    status_codes: tuple[int, ...] = field(default_factory=tuple)
    activity_id: str | None = None
    error_message: str | None = None
    throttle_count: int = 0

    def history_fragment(self) -> tuple[int, ...]:
        return self.status_codes or (self.status_code,)


class WorkerState(str, Enum):
    SKIPPED = "skipped"
    DISPATCHED = "dispatched"
    RESCHEDULED = "rescheduled"
    TERMINAL_FAILED = "terminal_failed"
    MALFORMED = "malformed"
    RETRYING = "retrying"
    DEAD_LETTERED = "dead_lettered"
