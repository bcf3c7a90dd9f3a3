"""Request dispatch: base, zone and server scoped calls with ISA recovery."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import structlog

from quantel_gateway.errors import (
    Classification,
    ConfigurationError,
    NotInitializedError,
    ResponseKind,
    ensure_good_response,
)
from quantel_gateway.isa import ISAConnectionManager
from quantel_gateway.settings import DEFAULT_ZONE_ID
from quantel_gateway.transport import GatewayTransport, Method, QueryParameters

logger = structlog.get_logger(__name__)

# "First provide a Quantel ISA connection URL (e.g. POST to /connect)"
_ISA_LOST = re.compile(r"first provide a quantel isa", re.IGNORECASE)


@dataclass
class SessionConfig:
    """Mutable identifiers shared by the dispatcher, cache and monitor."""

    zone_id: str = DEFAULT_ZONE_ID
    server_id: int | None = None
    initialized: bool = False


def lost_isa_connection(result: Classification) -> bool:
    """True for the gateway's 502 "first provide a Quantel ISA" error."""
    return (
        result.kind is ResponseKind.GATEWAY_ERROR
        and result.error is not None
        and result.error.status == 502
        and _ISA_LOST.search(result.error.message or "") is not None
    )


class RequestDispatcher:
    """Sends gateway requests, recovering once from a lost ISA session."""

    def __init__(
        self,
        transport: GatewayTransport,
        isa: ISAConnectionManager,
        config: SessionConfig,
    ) -> None:
        self._transport = transport
        self._isa = isa
        self._config = config

    async def send_raw(
        self,
        method: Method,
        resource: str,
        query: QueryParameters | None = None,
        body: Any = None,
    ) -> Classification:
        """One call, plus a single reconnect-and-retry if the ISA link is lost.

        The retried result is returned whatever it is; there is no second
        reconnect.
        """
        result = await self._transport.send(method, resource, query, body)
        if not lost_isa_connection(result):
            return result
        logger.warning(
            "Gateway lost its ISA connection, reconnecting",
            method=method,
            resource=resource,
        )
        await self._isa.reconnect()
        return await self._transport.send(method, resource, query, body)

    async def request(
        self,
        method: Method,
        resource: str,
        query: QueryParameters | None = None,
        body: Any = None,
    ) -> Any:
        """Unguarded call used before initialization completes."""
        return ensure_good_response(await self.send_raw(method, resource, query, body))

    async def send_base(
        self,
        method: Method,
        resource: str,
        query: QueryParameters | None = None,
        body: Any = None,
    ) -> Any:
        if not self._config.initialized:
            raise NotInitializedError("Quantel not initialized yet")
        return await self.request(method, resource, query, body)

    async def send_zone(
        self,
        method: Method,
        resource: str,
        query: QueryParameters | None = None,
        body: Any = None,
    ) -> Any:
        return await self.send_base(method, f"{self._config.zone_id}/{resource}", query, body)

    async def send_server(
        self,
        method: Method,
        resource: str,
        query: QueryParameters | None = None,
        body: Any = None,
    ) -> Any:
        if not self._config.server_id:
            raise ConfigurationError("Quantel server id not set")
        return await self.send_zone(
            method, f"server/{self._config.server_id}/{resource}", query, body
        )
