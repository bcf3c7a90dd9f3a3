"""Connection from the gateway to its ISA manager(s)."""

from __future__ import annotations

import re
from collections.abc import Sequence
from urllib.parse import quote

import structlog

from quantel_gateway.errors import ConfigurationError, ensure_good_response
from quantel_gateway.models import ConnectionDetails
from quantel_gateway.transport import GatewayTransport

logger = structlog.get_logger(__name__)

# The gateway tries comma-separated ISA managers in order, master first.
ENDPOINT_SEPARATOR = ","

_SCHEME = re.compile(r"^https?://", re.IGNORECASE)


def normalize_isa_endpoints(endpoints: str | Sequence[str] | None) -> list[str]:
    """Split, strip schemes and trailing slashes, and drop blank entries."""
    if endpoints is None:
        return []
    if isinstance(endpoints, str):
        endpoints = endpoints.split(ENDPOINT_SEPARATOR)
    normalized: list[str] = []
    for endpoint in endpoints:
        value = _SCHEME.sub("", endpoint.strip()).rstrip("/")
        if value:
            normalized.append(value)
    return normalized


class ISAConnectionManager:
    """Owns the ordered ISA endpoint list and (re)connects the gateway to it."""

    def __init__(self, transport: GatewayTransport) -> None:
        self._transport = transport
        self._endpoints: tuple[str, ...] = ()
        self._details: ConnectionDetails | None = None
        self.reconnect_count = 0

    @property
    def endpoints(self) -> list[str]:
        return list(self._endpoints)

    @property
    def connection_details(self) -> ConnectionDetails | None:
        """Details returned by the last successful connect, if any."""
        return self._details

    def configure(self, endpoints: str | Sequence[str] | None) -> None:
        """Replace the endpoint list. An empty list is only an error on connect."""
        self._endpoints = tuple(normalize_isa_endpoints(endpoints))

    def clear(self) -> None:
        self._endpoints = ()
        self._details = None

    def connect_resource(self) -> str:
        if not self._endpoints:
            raise ConfigurationError("Quantel connectToISA: ISA URLs not set!")
        joined = ENDPOINT_SEPARATOR.join(self._endpoints)
        return f"connect/{quote(joined, safe='')}"

    async def connect(self) -> ConnectionDetails:
        """Ask the gateway to connect to the configured ISA managers."""
        resource = self.connect_resource()
        logger.info("Connecting gateway to ISA", endpoints=list(self._endpoints))
        result = await self._transport.send("POST", resource)
        if result.error is not None:
            logger.warning(
                "ISA connection refused",
                status=result.error.status,
                message=result.error.message,
            )
        details = ConnectionDetails.model_validate(ensure_good_response(result))
        self._details = details
        logger.info("Connected to ISA", href=details.href, refs=details.refs, robin=details.robin)
        return details

    async def reconnect(self) -> ConnectionDetails:
        """Replay :meth:`connect` with the current endpoint list."""
        self.reconnect_count += 1
        logger.info("Reconnecting to ISA", attempt=self.reconnect_count)
        return await self.connect()
