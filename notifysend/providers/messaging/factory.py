from __future__ import annotations

from notifysend.core.config import get_settings
from notifysend.core.errors import ProviderConfigError
from notifysend.providers.messaging.base import MessagingTransport
from notifysend.providers.messaging.bot_connector import BotConnectorTransport
from notifysend.providers.messaging.fake import FakeMessagingTransport


def get_messaging_transport() -> MessagingTransport:
    settings = get_settings()
    provider = (settings.messaging_provider or "").lower()

    if provider == "fake":
        return FakeMessagingTransport()
    if provider == "bot_connector":
        if not settings.bot_app_id or not settings.bot_app_password:
            raise ProviderConfigError("BOT_APP_ID and BOT_APP_PASSWORD are required for the bot connector")
        return BotConnectorTransport()

    raise ProviderConfigError(f"Unsupported messaging provider: {provider}")
