from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# Sentinel status codes share the column with transport HTTP codes, so they stay negative.
INITIALIZATION_STATUS_CODE = 0
FINAL_FAULTED_STATUS_CODE = -1
FAULTED_AND_RETRYING_STATUS_CODE = -2
NOT_SUPPORTED_STATUS_CODE = -3

SUCCEEDED_STATUS_CODE = 201
THROTTLED_STATUS_CODE = 429
RECIPIENT_NOT_FOUND_STATUS_CODE = 404

# Rows in these states were never resolved and may still be sent.
PENDING_STATUS_CODES = frozenset(
    {INITIALIZATION_STATUS_CODE, FAULTED_AND_RETRYING_STATUS_CODE, THROTTLED_STATUS_CODE}
)

NOTIFICATION_STATUS_CANCELING = "Canceling"
NOTIFICATION_STATUS_CANCELED = "Canceled"
CANCELED_NOTIFICATION_STATUSES = frozenset({NOTIFICATION_STATUS_CANCELING, NOTIFICATION_STATUS_CANCELED})

MESSAGE_TYPE_CUSTOM_CARD = "CustomAC"

_HISTORY_SEPARATOR = ","


class Base(DeclarativeBase):
    pass


def delivery_status_for(status_code: int) -> str:
    # Collapse raw codes into the coarse vocabulary used by reporting screens.
    if 200 <= status_code < 300:
        return "Succeeded"
    if status_code == THROTTLED_STATUS_CODE:
        return "Throttled"
    if status_code == RECIPIENT_NOT_FOUND_STATUS_CODE:
        return "RecipientNotFound"
    if status_code == FAULTED_AND_RETRYING_STATUS_CODE:
        return "Retrying"
    if status_code == NOT_SUPPORTED_STATUS_CODE:
        return "NotSupported"
    return "Failed"


def format_status_history(codes: list[int] | tuple[int, ...]) -> str:
    # Every code is comma-terminated so concatenating fragments keeps the sequence parseable.
    return "".join(f"{int(code)}{_HISTORY_SEPARATOR}" for code in codes)


def parse_status_history(raw: str | None) -> list[int]:
    if not raw:
        return []
    return [int(part) for part in raw.split(_HISTORY_SEPARATOR) if part.strip()]


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    # Authoring lifecycle owned upstream; the worker only reads it.
    status: Mapped[str] = mapped_column(String, default="Sending", nullable=False)
    title: Mapped[str] = mapped_column(String, default="", nullable=False)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_link: Mapped[str | None] = mapped_column(Text, nullable=True)
    button_title: Mapped[str | None] = mapped_column(String, nullable=True)
    button_link: Mapped[str | None] = mapped_column(Text, nullable=True)
    author: Mapped[str | None] = mapped_column(String, nullable=True)
    notify_user: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    full_width: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    message_type: Mapped[str | None] = mapped_column(String, nullable=True)
    custom_card_json: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class SentNotification(Base):
    __tablename__ = "sent_notifications"
    __table_args__ = (Index("ix_sent_notifications_status_code", "notification_id", "status_code"),)

    notification_id: Mapped[str] = mapped_column(String, primary_key=True)
    recipient_id: Mapped[str] = mapped_column(String, primary_key=True)
    # Transport-assigned id, empty until a send succeeds.
    activity_id: Mapped[str] = mapped_column(String, default="", nullable=False)
    status_code: Mapped[int] = mapped_column(Integer, default=INITIALIZATION_STATUS_CODE, nullable=False)
    delivery_status: Mapped[str | None] = mapped_column(String, nullable=True)
    # Append-only; written only through the repository's atomic concatenation.
    all_send_status_codes: Mapped[str] = mapped_column(Text, default="", nullable=False)
    total_number_of_send_throttles: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    exception: Mapped[str | None] = mapped_column(Text, nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def status_history(self) -> list[int]:
        return parse_status_history(self.all_send_status_codes)
