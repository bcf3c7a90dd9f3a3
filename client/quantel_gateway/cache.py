"""Cache of the server record for the server a session controls."""

from __future__ import annotations

import asyncio

import structlog

from quantel_gateway.dispatch import RequestDispatcher, SessionConfig
from quantel_gateway.errors import ServerNotFoundError
from quantel_gateway.models import ServerInfo

logger = structlog.get_logger(__name__)


class ServerCache:
    """Last-resolved :class:`ServerInfo` for the configured server id.

    Refreshes are single-flight: concurrent callers share one pending
    listing request. A refresh started before :meth:`invalidate` never
    writes its result into the cache.
    """

    def __init__(self, dispatcher: RequestDispatcher, config: SessionConfig) -> None:
        self._dispatcher = dispatcher
        self._config = config
        self._record: ServerInfo | None = None
        self._generation = 0
        self._pending: asyncio.Task[ServerInfo | None] | None = None
        self._pending_generation = -1

    @property
    def record(self) -> ServerInfo | None:
        return self._record

    async def list_servers(self, zone_id: str | None = None) -> list[ServerInfo]:
        """List the servers of a zone, defaulting to the session's zone."""
        zone = zone_id or self._config.zone_id
        payload = await self._dispatcher.request("GET", f"{zone}/server")
        return [ServerInfo.model_validate(item) for item in payload or []]

    async def get(self, force_refresh: bool = False) -> ServerInfo | None:
        """Return the cached record, fetching it when missing or forced."""
        if (
            not force_refresh
            and self._record is not None
            and self._record.ident == self._config.server_id
        ):
            return self._record
        task = self._pending
        if task is None or task.done() or self._pending_generation != self._generation:
            task = asyncio.create_task(self._fetch(self._generation, self._config.server_id))
            self._pending = task
            self._pending_generation = self._generation
        # Shielded so a cancelled caller does not cancel the shared refresh.
        return await asyncio.shield(task)

    def invalidate(self) -> None:
        self._generation += 1
        self._record = None
        self._pending = None

    async def set_server_id(self, server_id: int | None) -> ServerInfo | None:
        """Change the server id and resolve it immediately.

        Raises:
            ServerNotFoundError: The zone does not list ``server_id``.
        """
        self._config.server_id = server_id
        self.invalidate()
        if not server_id:
            return None
        record = await self.get(force_refresh=True)
        if record is None:
            raise ServerNotFoundError(server_id)
        return record

    async def _fetch(self, generation: int, server_id: int | None) -> ServerInfo | None:
        servers = await self.list_servers()
        record = next((server for server in servers if server.ident == server_id), None)
        if generation == self._generation:
            self._record = record
        else:
            logger.debug("Discarding stale server refresh", server_id=server_id)
        if record is None:
            logger.info("Server not listed in zone", server_id=server_id, zone_id=self._config.zone_id)
        return record
