"""Environment-backed settings for the gateway client.

Values are read on every call so tests (and long-running hosts) can change
the environment without re-importing the module.
"""

from __future__ import annotations

import os

DEFAULT_ZONE_ID = "default"
DEFAULT_CHECK_STATUS_INTERVAL = 3.0
DEFAULT_CALL_TIMEOUT = 1.0
DEFAULT_REQUEST_NOT_FOUND_TEXT = "Not found. Request"


def _float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


class Settings:
    """Accessors for ``QUANTEL_*`` environment variables."""

    def gateway_url(self) -> str:
        return os.environ.get("QUANTEL_GATEWAY_URL", "").strip()

    def isa_urls(self) -> list[str]:
        """Comma-separated ISA manager addresses, master first."""
        raw = os.environ.get("QUANTEL_ISA_URLS", "")
        return [part.strip() for part in raw.split(",") if part.strip()]

    def zone_id(self) -> str:
        return os.environ.get("QUANTEL_ZONE_ID", "").strip() or DEFAULT_ZONE_ID

    def server_id(self) -> int | None:
        raw = os.environ.get("QUANTEL_SERVER_ID", "").strip()
        if not raw:
            return None
        try:
            return int(raw)
        except ValueError:
            return None

    def check_status_interval(self) -> float:
        return _float("QUANTEL_CHECK_STATUS_INTERVAL", DEFAULT_CHECK_STATUS_INTERVAL)

    def call_timeout(self) -> float:
        return _float("QUANTEL_CALL_TIMEOUT", DEFAULT_CALL_TIMEOUT)

    def request_not_found_text(self) -> str:
        return (
            os.environ.get("QUANTEL_REQUEST_NOT_FOUND_TEXT", "")
            or DEFAULT_REQUEST_NOT_FOUND_TEXT
        )

    def log_level(self) -> str:
        return os.environ.get("QUANTEL_LOG_LEVEL", "INFO").strip().upper() or "INFO"

    def log_format(self) -> str:
        value = os.environ.get("QUANTEL_LOG_FORMAT", "console").strip().lower()
        return value if value in ("console", "json") else "console"


settings = Settings()
