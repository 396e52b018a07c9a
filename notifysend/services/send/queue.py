from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Any

from arq import create_pool
from arq.connections import RedisSettings

from notifysend.core.config import get_settings
from notifysend.domain.messages import SendQueueMessage


logger = logging.getLogger(__name__)

SEND_MESSAGE_FUNCTION = "send_message"

_send_queue_pool = None
_send_queue_pool_loop = None
_send_queue_lock = asyncio.Lock()


async def get_send_queue_pool():
    # Cache the arq pool per event loop to avoid reconnect churn for producers.
    global _send_queue_pool, _send_queue_pool_loop
    current_loop = asyncio.get_running_loop()
    if _send_queue_pool is not None and _send_queue_pool_loop == current_loop:
        return _send_queue_pool
    if _send_queue_pool is not None and _send_queue_pool_loop != current_loop:
        _send_queue_pool = None
    async with _send_queue_lock:
        if _send_queue_pool is None:
            settings = get_settings()
            _send_queue_pool = await create_pool(
                RedisSettings.from_dsn(settings.redis_url),
                default_queue_name=settings.send_queue_name,
            )
            _send_queue_pool_loop = current_loop
    return _send_queue_pool


class SendQueue:
    def __init__(self, redis: Any | None = None, *, queue_name: str | None = None) -> None:
        # Workers pass arq's own connection from ctx; producers fall back to the cached pool.
        self._redis = redis
        self._queue_name = queue_name or get_settings().send_queue_name

    async def _pool(self):
        if self._redis is not None:
            return self._redis
        return await get_send_queue_pool()

    async def enqueue(self, message: SendQueueMessage, *, delay_seconds: float = 0) -> str | None:
        # No job id is passed: every copy is a new arq job with the same logical identity.
        defer = timedelta(seconds=max(0.0, float(delay_seconds)))
        pool = await self._pool()
        job = await pool.enqueue_job(
            SEND_MESSAGE_FUNCTION,
            message.model_dump(),
            _queue_name=self._queue_name,
            _defer_by=defer if defer.total_seconds() > 0 else None,
        )
        if job is None:
            logger.warning(
                "send_enqueue_duplicate notification_id=%s recipient_id=%s",
                message.notification_id,
                message.recipient_id,
            )
            return None
        return job.job_id

    async def send_delayed(self, message: SendQueueMessage, delay_seconds: float) -> str | None:
        logger.info(
            "send_requeued notification_id=%s recipient_id=%s delay_s=%s",
            message.notification_id,
            message.recipient_id,
            delay_seconds,
        )
        return await self.enqueue(message, delay_seconds=delay_seconds)


async def enqueue_send_message(message: SendQueueMessage, *, delay_seconds: float = 0) -> str | None:
    # Producer-side helper for components that fan a notification out to recipients.
    return await SendQueue().enqueue(message, delay_seconds=delay_seconds)
