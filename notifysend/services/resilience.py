from __future__ import annotations

import random
from dataclasses import dataclass

import httpx


TransientException = (TimeoutError, OSError, httpx.TimeoutException, httpx.NetworkError)


def is_transient_error(exc: Exception) -> bool:
    # Only timeouts and connection-level failures are worth another attempt.
    return isinstance(exc, TransientException)


@dataclass(frozen=True)
class RetryPolicy:
    timeout_ms: int
    backoff_ms: int


def backoff_seconds(policy: RetryPolicy, attempt: int) -> float:
    # Exponential in the attempt number, scaled by a 0.5-1.5 jitter factor.
    return (policy.backoff_ms / 1000.0) * (2 ** (attempt - 1)) * random.uniform(0.5, 1.5)
