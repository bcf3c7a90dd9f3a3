"""Session facade for a Quantel gateway controlling one video server."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from enum import Enum
from typing import Any

import httpx
import structlog

from quantel_gateway.cache import ServerCache
from quantel_gateway.dispatch import RequestDispatcher, SessionConfig
from quantel_gateway.errors import GatewayError, OperationFailedError, is_not_found
from quantel_gateway.isa import ISAConnectionManager
from quantel_gateway.models import (
    ClipData,
    ClipDataSummary,
    ClipSearchQuery,
    CloneInfo,
    CloneResult,
    ConnectionDetails,
    CopyProgress,
    JumpResult,
    MonitoredPort,
    PortInfo,
    PortLoadStatus,
    PortStatus,
    ReleaseStatus,
    ServerFragment,
    ServerFragments,
    ServerInfo,
    Trigger,
    TriggerResult,
    WipeResult,
    ZoneInfo,
)
from quantel_gateway.monitor import ErrorHandler, StatusCallback, StatusMonitor
from quantel_gateway.settings import DEFAULT_ZONE_ID, settings
from quantel_gateway.transport import GatewayTransport, normalize_gateway_url

logger = structlog.get_logger(__name__)

MonitoredPortsInput = Mapping[str, MonitoredPort | Iterable[int] | Mapping[str, Any]]


class GatewayState(str, Enum):
    """Initialization state of a gateway session."""

    UNCONFIGURED = "unconfigured"
    CONNECTING_ISA = "connecting_isa"
    RESOLVING_SERVER = "resolving_server"
    READY = "ready"


def _monitored_port(value: MonitoredPort | Iterable[int] | Mapping[str, Any]) -> MonitoredPort:
    if isinstance(value, MonitoredPort):
        return value
    if isinstance(value, Mapping):
        return MonitoredPort.model_validate(value)
    return MonitoredPort(channels=list(value))


class QuantelGateway:
    """Stateful client for a Quantel gateway and the server it controls.

    Typical use::

        gateway = QuantelGateway()
        await gateway.init("gateway:3000", ["isa-master:2096", "isa-backup:2096"], None, 1100)
        gateway.monitor_server_status(on_status)
        await gateway.port_play("my-port")
        await gateway.aclose()

    Args:
        check_status_interval: Seconds between status checks.
        call_timeout: Per-request timeout in seconds.
        request_not_found_text: Text the gateway puts in 404s for requests it
            cannot route, as opposed to resources that do not exist.
        http_client: Optional shared ``httpx.AsyncClient``; not closed by
            :meth:`aclose`.
    """

    def __init__(
        self,
        *,
        check_status_interval: float | None = None,
        call_timeout: float | None = None,
        request_not_found_text: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = SessionConfig()
        self._state = GatewayState.UNCONFIGURED
        self._request_not_found_text = request_not_found_text or settings.request_not_found_text()
        self._error_handlers: list[ErrorHandler] = []
        self._transport = GatewayTransport(
            timeout=call_timeout or settings.call_timeout(),
            client=http_client,
        )
        self._isa = ISAConnectionManager(self._transport)
        self._dispatcher = RequestDispatcher(self._transport, self._isa, self._config)
        self._cache = ServerCache(self._dispatcher, self._config)
        self._monitor = StatusMonitor(
            transport=self._transport,
            cache=self._cache,
            config=self._config,
            on_error=self._emit_error,
            interval=check_status_interval or settings.check_status_interval(),
        )

    async def __aenter__(self) -> QuantelGateway:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init(
        self,
        gateway_url: str,
        isa_urls: str | Sequence[str],
        zone_id: str | None = None,
        server_id: int | None = None,
    ) -> None:
        """Connect the gateway to the ISA and resolve the controlled server.

        On any failure the session is reset to ``UNCONFIGURED`` (address,
        ISA endpoints, zone and server id cleared) before the error
        propagates.
        """
        self._config.initialized = False
        self._cache.invalidate()
        try:
            self._transport.base_url = normalize_gateway_url(gateway_url)
            self._state = GatewayState.CONNECTING_ISA
            self._isa.configure(isa_urls)
            await self._isa.connect()
            self._config.zone_id = zone_id or DEFAULT_ZONE_ID
            self._state = GatewayState.RESOLVING_SERVER
            await self.set_server_id(server_id)
        except BaseException:
            logger.warning("Gateway initialization failed, resetting", gateway_url=gateway_url)
            self._reset()
            raise
        self._config.initialized = True
        self._state = GatewayState.READY
        logger.info(
            "Gateway initialized",
            gateway_url=self._transport.base_url,
            zone_id=self._config.zone_id,
            server_id=self._config.server_id,
        )

    def _reset(self) -> None:
        self._state = GatewayState.UNCONFIGURED
        self._config.initialized = False
        self._config.zone_id = DEFAULT_ZONE_ID
        self._config.server_id = None
        self._transport.base_url = ""
        self._isa.clear()
        self._cache.invalidate()

    async def connect_to_isa(self, isa_urls: str | Sequence[str] | None = None) -> ConnectionDetails:
        """Connect to the given ISA endpoints, or reconnect to the current ones."""
        if isa_urls:
            self._isa.configure(isa_urls)
        return await self._isa.connect()

    async def reconnect_to_isa(self) -> ConnectionDetails:
        return await self._isa.reconnect()

    async def set_server_id(self, server_id: int | None) -> ServerInfo | None:
        """Switch the controlled server; raises if the zone does not list it."""
        return await self._cache.set_server_id(server_id)

    def set_monitored_ports(self, monitored_ports: MonitoredPortsInput) -> None:
        """Declare the ports (and their channels) to check for conflicts.

        Values may be :class:`MonitoredPort`, an iterable of channel numbers
        or a ``{"channels": [...]}`` mapping.
        """
        self._monitor.monitored_ports = {
            name: _monitored_port(value) for name, value in monitored_ports.items()
        }

    def monitor_server_status(self, callback: StatusCallback) -> None:
        """Start monitoring; ``callback(connected, message)`` fires on change."""
        self._monitor.start(callback)

    def on_error(self, handler: ErrorHandler) -> Callable[[], None]:
        """Register a handler for errors raised outside a status check.

        Returns a function that unregisters the handler.
        """
        self._error_handlers.append(handler)
        return lambda: self._error_handlers.remove(handler)

    def _emit_error(self, exc: BaseException) -> None:
        if not self._error_handlers:
            logger.error("Unhandled gateway client error", exc_info=exc)
            return
        for handler in list(self._error_handlers):
            try:
                handler(exc)
            except Exception:
                logger.exception("Gateway error handler failed")

    def dispose(self) -> None:
        """Stop status monitoring. In-flight requests are not cancelled."""
        self._monitor.stop()

    async def aclose(self) -> None:
        """Dispose and close the HTTP client if this session created it."""
        self.dispose()
        await self._transport.aclose()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self._monitor.status.connected

    @property
    def status_message(self) -> str | None:
        return self._monitor.status.message

    @property
    def initialized(self) -> bool:
        return self._config.initialized

    @property
    def state(self) -> GatewayState:
        return self._state

    @property
    def gateway_url(self) -> str:
        return self._transport.base_url

    @property
    def isa_urls(self) -> list[str]:
        return self._isa.endpoints

    @property
    def zone_id(self) -> str:
        return self._config.zone_id

    @property
    def server_id(self) -> int | None:
        return self._config.server_id

    @property
    def monitored_ports(self) -> dict[str, MonitoredPort]:
        return dict(self._monitor.monitored_ports)

    @property
    def connection_details(self) -> ConnectionDetails | None:
        return self._isa.connection_details

    @property
    def check_status_interval(self) -> float:
        return self._monitor.interval

    @check_status_interval.setter
    def check_status_interval(self, seconds: float) -> None:
        if seconds <= 0:
            raise ValueError("check_status_interval must be positive")
        self._monitor.interval = seconds

    def _is_not_found(self, exc: GatewayError) -> bool:
        return is_not_found(exc, self._request_not_found_text)

    # ------------------------------------------------------------------
    # Zones and servers
    # ------------------------------------------------------------------

    async def get_zones(self) -> list[ZoneInfo]:
        payload = await self._dispatcher.request("GET", "")
        return [ZoneInfo.model_validate(item) for item in payload or []]

    async def get_servers(self, zone_id: str | None = None) -> list[ServerInfo]:
        return await self._cache.list_servers(zone_id)

    async def get_server(self, force_refresh: bool = False) -> ServerInfo | None:
        """Return the (possibly cached) record of the controlled server."""
        return await self._cache.get(force_refresh)

    # ------------------------------------------------------------------
    # Ports
    # ------------------------------------------------------------------

    async def get_port(self, port_id: str) -> PortStatus | None:
        """Status of a port, or None if the port does not exist."""
        try:
            payload = await self._dispatcher.send_server("GET", f"port/{port_id}")
        except GatewayError as exc:
            if self._is_not_found(exc):
                return None
            raise
        return PortStatus.model_validate(payload)

    async def create_port(self, port_id: str, channel_id: int) -> PortInfo:
        """Create (allocate) a port and connect it to a channel."""
        payload = await self._dispatcher.send_server("PUT", f"port/{port_id}/channel/{channel_id}")
        return PortInfo.model_validate(payload)

    async def release_port(self, port_id: str) -> ReleaseStatus:
        payload = await self._dispatcher.send_server("DELETE", f"port/{port_id}")
        return ReleaseStatus.model_validate(payload)

    async def reset_port(self, port_id: str) -> ReleaseStatus:
        """Remove all fragments from a port and reset its playhead."""
        payload = await self._dispatcher.send_server("POST", f"port/{port_id}/reset")
        return ReleaseStatus.model_validate(payload)

    # ------------------------------------------------------------------
    # Clips and fragments
    # ------------------------------------------------------------------

    async def get_clip(self, clip_id: int) -> ClipData | None:
        """Details of a clip, or None if the clip does not exist."""
        try:
            payload = await self._dispatcher.send_zone("GET", f"clip/{clip_id}")
        except GatewayError as exc:
            if self._is_not_found(exc):
                return None
            raise
        return ClipData.model_validate(payload)

    async def search_clip(
        self, query: ClipSearchQuery | Mapping[str, Any] | None = None, **properties: Any
    ) -> list[ClipDataSummary]:
        """Search clips by property, e.g. ``search_clip(Title="News", limit=10)``."""
        if isinstance(query, ClipSearchQuery):
            params = query.to_query()
        else:
            params = dict(query or {})
        params.update(properties)
        payload = await self._dispatcher.send_zone("GET", "clip", params)
        return [ClipDataSummary.model_validate(item) for item in payload or []]

    async def get_clip_fragments(
        self,
        clip_id: int,
        in_point: int | None = None,
        out_point: int | None = None,
    ) -> ServerFragments:
        """Fragments of a clip, optionally only those in ``[in_point, out_point)``."""
        if in_point is not None and out_point is not None:
            resource = f"clip/{clip_id}/fragments/{in_point}-{out_point}"
        else:
            resource = f"clip/{clip_id}/fragments"
        payload = await self._dispatcher.send_zone("GET", resource)
        return ServerFragments.model_validate(payload)

    async def load_fragments_onto_port(
        self,
        port_id: str,
        fragments: Iterable[ServerFragment | Mapping[str, Any]],
        offset: int | None = None,
    ) -> PortLoadStatus:
        body = [dict(f) if isinstance(f, Mapping) else f.to_wire() for f in fragments]
        payload = await self._dispatcher.send_server(
            "POST", f"port/{port_id}/fragments", {"offset": offset}, body
        )
        return PortLoadStatus.model_validate(payload)

    async def get_fragments_on_port(
        self,
        port_id: str,
        range_start: int | None = None,
        range_end: int | None = None,
    ) -> ServerFragments:
        payload = await self._dispatcher.send_server(
            "GET", f"port/{port_id}/fragments", {"start": range_start, "finish": range_end}
        )
        return ServerFragments.model_validate(payload)

    async def port_clear_fragments(
        self,
        port_id: str,
        range_start: int | None = None,
        range_end: int | None = None,
    ) -> WipeResult:
        """Clear fragments from a port.

        With a range, only that range is wiped; without one, everything up
        to (but not including) the playhead.
        """
        payload = await self._dispatcher.send_server(
            "DELETE", f"port/{port_id}/fragments", {"start": range_start, "finish": range_end}
        )
        result = WipeResult.model_validate(payload)
        if not result.wiped:
            raise OperationFailedError("clear port", "wiped", result.wiped)
        return result

    # ------------------------------------------------------------------
    # Transport control
    # ------------------------------------------------------------------

    async def _trigger(
        self, port_id: str, trigger: Trigger, operation: str, offset: int | None = None
    ) -> TriggerResult:
        payload = await self._dispatcher.send_server(
            "POST", f"port/{port_id}/trigger/{trigger.value}", {"offset": offset}
        )
        result = TriggerResult.model_validate(payload)
        if not result.success:
            raise OperationFailedError(operation, "success", result.success)
        return result

    async def port_play(self, port_id: str) -> TriggerResult:
        return await self._trigger(port_id, Trigger.START, "trigger start")

    async def port_stop(self, port_id: str, stop_at_frame: int | None = None) -> TriggerResult:
        """Stop (pause) playback, optionally at a given frame."""
        return await self._trigger(port_id, Trigger.STOP, "trigger stop", stop_at_frame)

    async def port_hard_jump(self, port_id: str, jump_to_frame: int | None = None) -> JumpResult:
        """Jump straight to a frame; the output may flicker as nothing is preloaded."""
        payload = await self._dispatcher.send_server(
            "POST", f"port/{port_id}/trigger/{Trigger.JUMP.value}", {"offset": jump_to_frame}
        )
        result = JumpResult.model_validate(payload)
        if not result.success:
            raise OperationFailedError("hard jump", "success", result.success)
        return result

    async def port_prepare_jump(self, port_id: str, jump_to_frame: int | None = None) -> JumpResult:
        """Preload the frames for a later :meth:`port_trigger_jump`."""
        payload = await self._dispatcher.send_server(
            "PUT", f"port/{port_id}/jump", {"offset": jump_to_frame}
        )
        result = JumpResult.model_validate(payload)
        if not result.success:
            raise OperationFailedError("prepare jump", "success", result.success)
        return result

    async def port_trigger_jump(self, port_id: str) -> TriggerResult:
        return await self._trigger(port_id, Trigger.JUMP, "trigger jump")

    # ------------------------------------------------------------------
    # Copies
    # ------------------------------------------------------------------

    async def copy_clip(
        self,
        zone_id: int | None,
        clip_id: int,
        pool_id: int,
        priority: int | None = None,
        history: bool | None = None,
    ) -> CloneResult:
        """Clone a clip into a pool of this zone.

        Args:
            zone_id: Source zone for inter-zone copies, otherwise None.
            clip_id: Source clip.
            pool_id: Target pool.
            priority: 0 (low) to 15 (high); the gateway defaults to 8.
            history: For inter-zone copies, carry provenance along (gateway
                default True).

        Returns:
            The copy details; ``copy_id`` identifies the target clip, which
            may be a pre-existing copy.
        """
        info = CloneInfo(
            zone_id=zone_id, clip_id=clip_id, pool_id=pool_id, priority=priority, history=history
        )
        payload = await self._dispatcher.send_zone("POST", "copy", None, info.to_wire())
        return CloneResult.model_validate(payload)

    async def get_copy_remaining(self, copy_id: int) -> CopyProgress:
        """Progress of a copy; raises a 404 GatewayError once it is long finished."""
        payload = await self._dispatcher.send_zone("GET", f"copy/{copy_id}")
        return CopyProgress.model_validate(payload)

    async def get_all_copy_operations(self) -> list[CopyProgress]:
        payload = await self._dispatcher.send_zone("GET", "copy")
        return [CopyProgress.model_validate(item) for item in payload or []]
