from __future__ import annotations

import copy
from typing import Any, Protocol
from urllib.parse import quote
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notifysend.core.config import get_settings
from notifysend.core.errors import NotificationNotFoundError
from notifysend.domain.messages import SendQueueMessage
from notifysend.domain.models import MESSAGE_TYPE_CUSTOM_CARD, Notification
from notifysend.persistence.repos import notifications as notifications_repo


ADAPTIVE_CARD_CONTENT_TYPE = "application/vnd.microsoft.card.adaptive"
_ADAPTIVE_CARD_SCHEMA = "http://adaptivecards.io/schemas/adaptive-card.json"
_ADAPTIVE_CARD_VERSION = "1.2"


class MessageRenderer(Protocol):
    async def render(self, notification_id: str, message: SendQueueMessage) -> dict[str, Any]:
        ...


def build_adaptive_card(notification: Notification) -> dict[str, Any]:
    body: list[dict[str, Any]] = [
        {
            "type": "TextBlock",
            "text": notification.title,
            "size": "ExtraLarge",
            "weight": "Bolder",
            "wrap": True,
        }
    ]
    if notification.image_link:
        body.append({"type": "Image", "url": notification.image_link, "size": "Stretch", "altText": ""})
    if notification.summary:
        body.append({"type": "TextBlock", "text": notification.summary, "wrap": True})
    if notification.author:
        body.append(
            {"type": "TextBlock", "text": notification.author, "size": "Small", "weight": "Lighter", "wrap": True}
        )
    actions: list[dict[str, Any]] = []
    if notification.button_title and notification.button_link:
        actions.append({"type": "Action.OpenUrl", "title": notification.button_title, "url": notification.button_link})
    return {
        "type": "AdaptiveCard",
        "$schema": _ADAPTIVE_CARD_SCHEMA,
        "version": _ADAPTIVE_CARD_VERSION,
        "body": body,
        "actions": actions,
    }


class AdaptiveCardRenderer:
    """Builds the Bot Framework activity for one recipient of a stored notification."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        app_base_uri: str | None = None,
        track_view_click_pii: bool | None = None,
    ) -> None:
        settings = get_settings()
        self._session_factory = session_factory
        self._app_base_uri = (app_base_uri or settings.app_base_uri).rstrip("/")
        self._track_pii = settings.track_view_click_pii if track_view_click_pii is None else track_view_click_pii

    async def render(self, notification_id: str, message: SendQueueMessage) -> dict[str, Any]:
        async with self._session_factory() as session:
            notification = await notifications_repo.get_notification(session, notification_id)
        if notification is None:
            raise NotificationNotFoundError(f"notification {notification_id} not found")

        is_user = message.recipient_type == "user"
        if notification.message_type == MESSAGE_TYPE_CUSTOM_CARD and notification.custom_card_json:
            # Custom cards are sent as authored; only the notify flag is applied.
            card = copy.deepcopy(notification.custom_card_json)
        else:
            card = build_adaptive_card(notification)
            if notification.full_width:
                card["msteams"] = {"width": "full"}
            if is_user:
                self._apply_tracking(card, notification_id=notification_id, recipient_id=message.recipient_id)

        activity: dict[str, Any] = {
            "type": "message",
            "summary": notification.title,
            "attachments": [{"contentType": ADAPTIVE_CARD_CONTENT_TYPE, "content": card}],
        }
        if is_user and notification.notify_user:
            activity["channelData"] = {"notification": {"alert": True}}
        return activity

    def _apply_tracking(self, card: dict[str, Any], *, notification_id: str, recipient_id: str) -> None:
        unique_user = recipient_id if self._track_pii else uuid4().hex
        card.setdefault("body", []).append(
            {
                "type": "Image",
                "url": f"{self._app_base_uri}/track?url={notification_id}-{unique_user}.gif",
                "spacing": "None",
                "altText": "",
                "width": "1px",
                "height": "1px",
            }
        )
        for action in card.get("actions", []):
            if action.get("type") == "Action.OpenUrl" and action.get("url"):
                action["url"] = (
                    f"{self._app_base_uri}/redirect?url={quote(str(action['url']), safe='')}"
                    f"&id={notification_id}&userId={unique_user}"
                )
