from __future__ import annotations

import logging
from collections import defaultdict


logger = logging.getLogger(__name__)

_counters: dict[str, int] = defaultdict(int)


def increment_counter(name: str, value: int = 1) -> None:
    _counters[name] += value


def get_counter(name: str) -> int:
    return int(_counters.get(name, 0))


def record_external_call(*, integration: str, latency_ms: float, success: bool) -> None:
    # Count messaging API outcomes per integration; latency goes to debug logs only.
    outcome = "success" if success else "failure"
    increment_counter(f"external_calls_total.{integration}.{outcome}")
    logger.debug(
        "external_call integration=%s success=%s latency_ms=%.1f",
        integration,
        success,
        latency_ms,
    )


def reset_telemetry() -> None:
    # Allow tests to assert on counters from a clean slate.
    _counters.clear()
