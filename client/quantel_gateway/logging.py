"""structlog configuration for hosts embedding the gateway client."""

from __future__ import annotations

import logging
import re
import sys
from typing import Any

import structlog

from quantel_gateway.settings import settings

_URL_CREDENTIALS = re.compile(r"(://)[^:/@\s]+:[^@/\s]+@")


def redact_url_credentials(_, __, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask ``user:password@`` segments in any string value of the event."""

    def redact(value: Any) -> Any:
        if isinstance(value, str):
            return _URL_CREDENTIALS.sub(r"\1***@", value)
        if isinstance(value, dict):
            return {k: redact(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [redact(item) for item in value]
        return value

    for key in list(event_dict.keys()):
        event_dict[key] = redact(event_dict[key])
    return event_dict


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure structlog and the stdlib root handler.

    Args:
        level: Log level name; defaults to ``QUANTEL_LOG_LEVEL``.
        fmt: ``"console"`` or ``"json"``; defaults to ``QUANTEL_LOG_FORMAT``.
    """
    level_name = (level or settings.log_level()).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)
    renderers: list[Any]
    if (fmt or settings.log_format()) == "json":
        renderers = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        # ConsoleRenderer formats exc_info itself.
        renderers = [structlog.dev.ConsoleRenderer()]

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            redact_url_credentials,
            *renderers,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
