from __future__ import annotations

from notifysend.core.config import get_settings


_DEFAULT_LOCALE = "en"

_STRINGS: dict[str, dict[str, str]] = {
    "en": {
        "GuestUserNotSupported": "Guest users are not supported.",
        "AppNotInstalled": "The app is not installed for this recipient.",
        "Failed": "Failed",
    },
    "fr": {
        "GuestUserNotSupported": "Les utilisateurs invités ne sont pas pris en charge.",
        "AppNotInstalled": "L'application n'est pas installée pour ce destinataire.",
        "Failed": "Échec",
    },
    "de": {
        "GuestUserNotSupported": "Gastbenutzer werden nicht unterstützt.",
        "AppNotInstalled": "Die App ist für diesen Empfänger nicht installiert.",
        "Failed": "Fehlgeschlagen",
    },
}


def get_string(key: str, locale: str | None = None) -> str:
    # Fall back to English, then to the key itself, so a missing translation never blocks a status write.
    resolved = (locale or get_settings().locale or _DEFAULT_LOCALE).lower().split("-")[0]
    table = _STRINGS.get(resolved) or _STRINGS[_DEFAULT_LOCALE]
    if key in table:
        return table[key]
    return _STRINGS[_DEFAULT_LOCALE].get(key, key)
