from __future__ import annotations


class NotifySendError(Exception):
    """Base error for notifysend."""


class MalformedJobError(NotifySendError):
    """Queue payload is structurally invalid; redelivery can never succeed."""


class ProviderConfigError(NotifySendError):
    """Missing or invalid messaging provider configuration."""


class TransportError(NotifySendError):
    """Messaging API could not be reached after the allowed attempts."""


class TransportAuthError(TransportError):
    """Messaging API token could not be acquired."""


class StatusStoreError(NotifySendError):
    """Delivery status could not be persisted."""


class NotificationNotFoundError(NotifySendError):
    """Notification referenced by a job has no stored content to render."""
