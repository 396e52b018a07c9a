from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from notifysend.domain.models import SentNotification, delivery_status_for, format_status_history


def _insert_for(session: AsyncSession):
    # Both supported dialects expose INSERT .. ON CONFLICT with an `excluded` namespace.
    dialect = session.bind.dialect.name if session.bind is not None else "postgresql"
    if dialect == "sqlite":
        return sqlite.insert
    return postgresql.insert


async def upsert_status(
    session: AsyncSession,
    *,
    notification_id: str,
    recipient_id: str,
    activity_id: str,
    status_code: int,
    status_codes: list[int] | tuple[int, ...],
    total_number_of_send_throttles: int,
    error_message: str | None,
    exception: str | None,
    sent_at: datetime,
) -> None:
    # Single statement: scalars are last-writer-wins, history is concatenated server-side.
    fragment = format_status_history(status_codes)
    insert = _insert_for(session)
    stmt = insert(SentNotification).values(
        notification_id=notification_id,
        recipient_id=recipient_id,
        activity_id=activity_id,
        status_code=status_code,
        delivery_status=delivery_status_for(status_code),
        all_send_status_codes=fragment,
        total_number_of_send_throttles=total_number_of_send_throttles,
        error_message=error_message,
        exception=exception,
        sent_at=sent_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[SentNotification.notification_id, SentNotification.recipient_id],
        set_={
            "activity_id": stmt.excluded.activity_id,
            "status_code": stmt.excluded.status_code,
            "delivery_status": stmt.excluded.delivery_status,
            "all_send_status_codes": SentNotification.all_send_status_codes + stmt.excluded.all_send_status_codes,
            "total_number_of_send_throttles": stmt.excluded.total_number_of_send_throttles,
            "error_message": stmt.excluded.error_message,
            "exception": stmt.excluded.exception,
            "sent_at": stmt.excluded.sent_at,
        },
    )
    await session.execute(stmt)


async def get_status(
    session: AsyncSession,
    *,
    notification_id: str,
    recipient_id: str,
) -> SentNotification | None:
    result = await session.execute(
        select(SentNotification).where(
            SentNotification.notification_id == notification_id,
            SentNotification.recipient_id == recipient_id,
        )
    )
    return result.scalar_one_or_none()
