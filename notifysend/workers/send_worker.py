from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from arq import Retry
from arq.connections import RedisSettings
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notifysend.core.config import get_settings
from notifysend.core.logging import configure_logging
from notifysend.persistence.db import SessionLocal, engine
from notifysend.providers.messaging.base import MessagingTransport
from notifysend.providers.messaging.factory import get_messaging_transport
from notifysend.services.notification_service import SqlNotificationService
from notifysend.services.rendering import AdaptiveCardRenderer
from notifysend.services.send.dispatcher import Dispatcher
from notifysend.services.send.gate import DeliveryGate
from notifysend.services.send.processor import SendProcessor
from notifysend.services.send.queue import SendQueue
from notifysend.services.send.reconciler import Reconciler
from notifysend.services.throttle import ThrottleCoordinator


logger = logging.getLogger(__name__)


def build_send_processor(
    *,
    redis: Any,
    session_factory: async_sessionmaker[AsyncSession],
    transport: MessagingTransport,
) -> SendProcessor:
    # Wire one processor per worker process; collaborators are safe to share across jobs.
    settings = get_settings()
    notification_service = SqlNotificationService(session_factory)
    throttle = ThrottleCoordinator(redis=redis)
    queue = SendQueue(redis)
    return SendProcessor(
        gate=DeliveryGate(
            notification_service=notification_service,
            throttle=throttle,
            retry_delay_seconds=settings.send_retry_delay_seconds,
        ),
        renderer=AdaptiveCardRenderer(session_factory),
        dispatcher=Dispatcher(transport=transport, max_attempts=settings.send_max_attempts),
        reconciler=Reconciler(
            notification_service=notification_service,
            throttle=throttle,
            queue=queue,
            retry_delay_seconds=settings.send_retry_delay_seconds,
        ),
        queue=queue,
        max_delivery_count=settings.send_max_delivery_count,
    )


async def send_message(ctx, payload: dict) -> str:
    # arq's job_try is the queue delivery count, starting at 1.
    processor: SendProcessor = ctx["send_processor"]
    delivery_count = int(ctx.get("job_try") or 1)
    result = await processor.process(payload, delivery_count=delivery_count)
    if result.should_redeliver:
        backoff_s = max(0, int(get_settings().send_redelivery_backoff_s)) * delivery_count
        raise Retry(defer=timedelta(seconds=backoff_s)) from result.error
    return result.state.value


async def _startup(ctx) -> None:
    configure_logging()
    transport = get_messaging_transport()
    ctx["messaging_transport"] = transport
    ctx["send_processor"] = build_send_processor(
        redis=ctx["redis"],
        session_factory=SessionLocal,
        transport=transport,
    )
    logger.info("send_worker_started queue=%s", get_settings().send_queue_name)


async def _shutdown(ctx) -> None:
    # Close pooled HTTP connections held by the live transport.
    transport = ctx.get("messaging_transport")
    close = getattr(transport, "aclose", None)
    if close is not None:
        await close()
    await engine.dispose()


class WorkerSettings:
    # Keep worker configuration as class attributes for arq CLI compatibility.
    settings = get_settings()
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    queue_name = settings.send_queue_name
    # arq stops retrying at the same count the failure policy treats as dead-lettered.
    max_tries = max(1, int(settings.send_max_delivery_count))
    job_timeout = settings.send_job_timeout_s
    functions = [send_message]
    on_startup = _startup
    on_shutdown = _shutdown
