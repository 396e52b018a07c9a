from __future__ import annotations

import logging

from notifysend.core.config import get_settings


_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str | None = None) -> None:
    # Install one stream handler so worker processes log uniformly regardless of launcher.
    resolved = (level or get_settings().log_level or "INFO").upper()
    root = logging.getLogger()
    if not any(getattr(handler, "_notifysend", False) for handler in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        handler._notifysend = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(resolved)
    # httpx logs every request at INFO; keep it out of per-job output.
    logging.getLogger("httpx").setLevel(logging.WARNING)
