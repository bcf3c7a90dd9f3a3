"""Asyncio client for the Quantel gateway."""

from quantel_gateway.errors import (
    ConfigurationError,
    GatewayError,
    GatewayTransportError,
    NotInitializedError,
    OperationFailedError,
    QuantelError,
    ServerNotFoundError,
)
from quantel_gateway.gateway import GatewayState, QuantelGateway
from quantel_gateway.models import MonitoredPort
from quantel_gateway.monitor import MonitorStatus

__all__ = [
    "ConfigurationError",
    "GatewayError",
    "GatewayState",
    "GatewayTransportError",
    "MonitorStatus",
    "MonitoredPort",
    "NotInitializedError",
    "OperationFailedError",
    "QuantelError",
    "QuantelGateway",
    "ServerNotFoundError",
]
