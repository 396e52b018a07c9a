from __future__ import annotations

import logging
import time
from typing import Callable

from redis.asyncio import Redis

from notifysend.core.config import get_settings
from notifysend.services.telemetry import increment_counter


logger = logging.getLogger(__name__)


class ThrottleCoordinator:
    """Global send throttle shared by every worker through Redis.

    The flag is a single key whose Redis expiry is the cooldown deadline. Setting it
    uses ``SET NX PXAT`` and falls back to ``PEXPIREAT GT`` when the key exists, so
    concurrent callers can only push the deadline later, never earlier. Without a
    Redis handle the state lives in process memory, which is only correct for a
    single worker and is meant for local runs and tests.
    """

    def __init__(
        self,
        *,
        redis: Redis | None = None,
        key: str | None = None,
        time_source: Callable[[], float] | None = None,
    ) -> None:
        self._redis = redis
        self._key = key or get_settings().throttle_redis_key
        self._time = time_source or time.time
        self._local_expires_at: float | None = None

    @property
    def key(self) -> str:
        return self._key

    async def is_throttled(self) -> bool:
        if self._redis is None:
            return self._local_expires_at is not None and self._time() < self._local_expires_at
        return bool(await self._redis.exists(self._key))

    async def set_throttled(self, delay_seconds: float) -> float:
        # Returns the deadline this call asked for; the stored one may be later.
        expires_at = self._time() + max(0.0, float(delay_seconds))
        if self._redis is None:
            if self._local_expires_at is None or expires_at > self._local_expires_at:
                self._local_expires_at = expires_at
        else:
            expires_ms = int(expires_at * 1000)
            created = await self._redis.set(self._key, str(expires_ms), nx=True, pxat=expires_ms)
            if not created:
                extended = await self._redis.pexpireat(self._key, expires_ms, gt=True)
                if not extended and not await self._redis.exists(self._key):
                    # Key expired between the two calls.
                    await self._redis.set(self._key, str(expires_ms), nx=True, pxat=expires_ms)
        increment_counter("send_throttle_engaged_total")
        logger.warning("send_throttle_engaged delay_s=%s expires_at=%s", delay_seconds, expires_at)
        return expires_at
