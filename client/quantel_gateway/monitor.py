"""Periodic server status monitoring and port conflict detection."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Optional

import structlog

from quantel_gateway.cache import ServerCache
from quantel_gateway.dispatch import SessionConfig
from quantel_gateway.models import MonitoredPort, ServerInfo
from quantel_gateway.settings import DEFAULT_CHECK_STATUS_INTERVAL
from quantel_gateway.transport import GatewayTransport

logger = structlog.get_logger(__name__)

INITIALIZING_MESSAGE = "Initializing..."

StatusCallback = Callable[[bool, Optional[str]], Optional[Awaitable[None]]]
ErrorHandler = Callable[[BaseException], None]


@dataclass(frozen=True, slots=True)
class MonitorStatus:
    """Connectivity flag and diagnostic message, always replaced together.

    ``connected`` means the gateway answered and the server is up; the
    status is healthy only when ``message`` is None.
    """

    connected: bool
    message: str | None

    @property
    def healthy(self) -> bool:
        return self.message is None


def find_port_conflicts(server: ServerInfo, monitored_ports: Mapping[str, MonitoredPort]) -> list[str]:
    """Describe monitored ports that cannot be created or whose channels are taken."""
    conflicts: list[str] = []
    assigned = server.assigned_port_names()
    for name, port in monitored_ports.items():
        if (
            name not in assigned
            and server.num_channels is not None
            and len(assigned) >= server.num_channels
        ):
            conflicts.append(
                f"Port {name}: no room to create port, "
                f"all {server.num_channels} channels are assigned"
            )
        for channel in port.channels:
            owner = server.port_on_channel(channel)
            if owner and owner != name:
                conflicts.append(f"Port {name}: channel {channel} already assigned to {owner}")
    return conflicts


class StatusMonitor:
    """Polls the server record on a fixed interval and reports status changes.

    Each tick runs as its own task, so a slow tick does not push back the
    schedule; ticks may overlap and rely on the cache's single-flight
    refresh. After :meth:`stop` returns no callback is invoked.
    """

    def __init__(
        self,
        *,
        transport: GatewayTransport,
        cache: ServerCache,
        config: SessionConfig,
        on_error: ErrorHandler,
        interval: float = DEFAULT_CHECK_STATUS_INTERVAL,
    ) -> None:
        self._transport = transport
        self._cache = cache
        self._config = config
        self._on_error = on_error
        self.interval = interval
        self.monitored_ports: dict[str, MonitoredPort] = {}
        self._status = MonitorStatus(connected=False, message=INITIALIZING_MESSAGE)
        self._callback: StatusCallback | None = None
        self._loop_task: asyncio.Task[None] | None = None
        self._ticks: set[asyncio.Task[None]] = set()
        self._stopped = True

    @property
    def status(self) -> MonitorStatus:
        return self._status

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def start(self, callback: StatusCallback) -> None:
        """Run one tick now and then every ``interval`` seconds.

        Must be called from a running event loop. Calling it again replaces
        the callback and restarts the schedule.
        """
        self.stop()
        self._callback = callback
        self._stopped = False
        self._loop_task = asyncio.create_task(self._run())
        logger.info("Status monitor started", interval=self.interval)

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        if self._loop_task is not None:
            self._loop_task.cancel()
            self._loop_task = None
        for task in list(self._ticks):
            task.cancel()
        self._ticks.clear()
        logger.info("Status monitor stopped")

    async def check(self) -> MonitorStatus:
        """Compute the current status without notifying anyone. Never raises."""
        try:
            return await self._evaluate()
        except Exception as exc:
            logger.warning("Status check failed", error=str(exc))
            return MonitorStatus(
                connected=False,
                message=f"Error when monitoring status: {str(exc) or type(exc).__name__}",
            )

    async def tick(self) -> None:
        """Check status and invoke the callback when the message changed."""
        status = await self.check()
        if self._stopped or status.message == self._status.message:
            return
        self._status = status
        logger.info("Server status changed", connected=status.connected, message=status.message)
        callback = self._callback
        if callback is None:
            return
        try:
            result = callback(status.connected, status.message)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            self._on_error(exc)

    async def _evaluate(self) -> MonitorStatus:
        if not self._transport.base_url:
            return MonitorStatus(False, "Gateway URL not set")
        server_id = self._config.server_id
        if not server_id:
            return MonitorStatus(False, "Server id not set")

        server = await self._cache.get(force_refresh=True)
        if server is None:
            return MonitorStatus(False, f"Server {server_id} not present on ISA")
        if server.down:
            return MonitorStatus(False, f"Server {server_id} is down")

        # Reachable and up from here on; later messages are warnings.
        conflicts = find_port_conflicts(server, self.monitored_ports)
        if conflicts:
            return MonitorStatus(True, ", ".join(conflicts))
        if not self._config.initialized:
            return MonitorStatus(True, "Not initialized")
        return MonitorStatus(True, None)

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time()
        while not self._stopped:
            self._spawn_tick()
            next_at += self.interval
            now = loop.time()
            if next_at < now:
                # Ticks missed while the loop was blocked are dropped.
                next_at += ((now - next_at) // self.interval + 1) * self.interval
            await asyncio.sleep(next_at - now)

    def _spawn_tick(self) -> None:
        task = asyncio.create_task(self.tick())
        self._ticks.add(task)
        task.add_done_callback(self._tick_done)

    def _tick_done(self, task: asyncio.Task[None]) -> None:
        self._ticks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._on_error(exc)
