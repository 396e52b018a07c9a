from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from notifysend.domain.models import Notification


async def get_notification(session: AsyncSession, notification_id: str) -> Notification | None:
    result = await session.execute(select(Notification).where(Notification.id == notification_id))
    return result.scalar_one_or_none()


async def get_notification_status(session: AsyncSession, notification_id: str) -> str | None:
    # Read only the status column; the gate runs this for every dequeued job.
    result = await session.execute(select(Notification.status).where(Notification.id == notification_id))
    return result.scalar_one_or_none()
