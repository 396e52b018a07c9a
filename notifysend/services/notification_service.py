from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notifysend.core.errors import StatusStoreError
from notifysend.domain.messages import SendQueueMessage
from notifysend.domain.models import CANCELED_NOTIFICATION_STATUSES, PENDING_STATUS_CODES
from notifysend.persistence.repos import notifications as notifications_repo
from notifysend.persistence.repos import sent_notifications as sent_notifications_repo


logger = logging.getLogger(__name__)


class NotificationService(Protocol):
    async def is_notification_canceled(self, message: SendQueueMessage) -> bool:
        ...

    async def is_pending_notification(self, message: SendQueueMessage) -> bool:
        ...

    async def update_sent_notification(
        self,
        *,
        notification_id: str,
        recipient_id: str,
        activity_id: str,
        total_number_of_send_throttles: int,
        status_code: int,
        status_codes: list[int] | tuple[int, ...],
        error_message: str | None,
        exception: str | None = None,
    ) -> None:
        ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SqlNotificationService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def is_notification_canceled(self, message: SendQueueMessage) -> bool:
        async with self._session_factory() as session:
            status = await notifications_repo.get_notification_status(session, message.notification_id)
        return status in CANCELED_NOTIFICATION_STATUSES

    async def is_pending_notification(self, message: SendQueueMessage) -> bool:
        # A missing row has never been written, so the recipient is still pending.
        async with self._session_factory() as session:
            row = await sent_notifications_repo.get_status(
                session,
                notification_id=message.notification_id,
                recipient_id=message.recipient_id,
            )
        return row is None or row.status_code in PENDING_STATUS_CODES

    async def update_sent_notification(
        self,
        *,
        notification_id: str,
        recipient_id: str,
        activity_id: str,
        total_number_of_send_throttles: int,
        status_code: int,
        status_codes: list[int] | tuple[int, ...],
        error_message: str | None,
        exception: str | None = None,
    ) -> None:
        try:
            async with self._session_factory() as session:
                await sent_notifications_repo.upsert_status(
                    session,
                    notification_id=notification_id,
                    recipient_id=recipient_id,
                    activity_id=activity_id,
                    status_code=status_code,
                    status_codes=list(status_codes) or [status_code],
                    total_number_of_send_throttles=total_number_of_send_throttles,
                    error_message=error_message,
                    exception=exception,
                    sent_at=_utc_now(),
                )
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error(
                "sent_notification_update_failed notification_id=%s recipient_id=%s status_code=%s",
                notification_id,
                recipient_id,
                status_code,
            )
            raise StatusStoreError("Failed to persist delivery status") from exc
