"""Exceptions and response classification for gateway calls."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from quantel_gateway.models import GatewayErrorResponse
from quantel_gateway.settings import DEFAULT_REQUEST_NOT_FOUND_TEXT


class QuantelError(Exception):
    """Base class for errors raised by the gateway client."""


class ConfigurationError(QuantelError):
    """A required address or identifier is not set."""


class NotInitializedError(ConfigurationError):
    """A gateway call was attempted before ``init`` completed."""


class ServerNotFoundError(QuantelError):
    """The configured server id is not listed in the zone."""

    def __init__(self, server_id: int) -> None:
        super().__init__(f"Server {server_id} not found!")
        self.server_id = server_id


class GatewayError(QuantelError):
    """Structured error reported by the gateway."""

    def __init__(self, status: int, message: str, stack: str = "") -> None:
        super().__init__(f"{status} {message}\n{stack}")
        self.status = status
        self.message = message
        self.stack = stack

    @classmethod
    def from_response(cls, response: GatewayErrorResponse) -> GatewayError:
        return cls(response.status, response.message, response.stack)


class OperationFailedError(QuantelError):
    """The gateway accepted the call but its payload reports failure."""

    def __init__(self, operation: str, flag: str, value: Any) -> None:
        super().__init__(f"Quantel {operation}: Server returned {flag}={value}")
        self.operation = operation
        self.flag = flag
        self.value = value


class GatewayTransportError(QuantelError):
    """Non-success HTTP response that carried no gateway error body."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ResponseKind(str, Enum):
    SUCCESS = "success"
    GATEWAY_ERROR = "gateway_error"
    TRANSPORT_FAILURE = "transport_failure"


@dataclass(frozen=True, slots=True)
class Classification:
    """Outcome of one gateway call.

    Exactly one of ``payload`` (success), ``error`` (gateway error) or
    ``exception`` (transport failure) is meaningful, according to ``kind``.
    """

    kind: ResponseKind
    payload: Any = None
    error: GatewayErrorResponse | None = None
    exception: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.kind is ResponseKind.SUCCESS


def is_error_response(value: Any) -> bool:
    """Return True when ``value`` has the gateway's error shape.

    That is a mapping with a numeric, non-200 ``status`` plus string
    ``message`` and ``stack`` fields.
    """
    if not isinstance(value, dict):
        return False
    status = value.get("status")
    # bool is an int subclass but never a status code
    if isinstance(status, bool) or not isinstance(status, (int, float)):
        return False
    if not status or status == 200:
        return False
    return isinstance(value.get("message"), str) and isinstance(value.get("stack"), str)


def classify(value: Any) -> Classification:
    """Classify a decoded response body or a transport exception."""
    if isinstance(value, BaseException):
        return Classification(ResponseKind.TRANSPORT_FAILURE, exception=value)
    if is_error_response(value):
        error = GatewayErrorResponse(
            status=int(value["status"]),
            message=value["message"],
            stack=value["stack"],
        )
        return Classification(ResponseKind.GATEWAY_ERROR, error=error)
    return Classification(ResponseKind.SUCCESS, payload=value)


def ensure_good_response(result: Classification, *, if_404_then_none: bool = False) -> Any:
    """Return the payload of a successful call, raising for anything else.

    Transport exceptions are re-raised unchanged. Gateway errors raise
    :class:`GatewayError`, except a 404 when ``if_404_then_none`` is set.
    """
    if result.kind is ResponseKind.TRANSPORT_FAILURE and result.exception is not None:
        raise result.exception
    if result.kind is ResponseKind.GATEWAY_ERROR and result.error is not None:
        if result.error.status == 404 and if_404_then_none:
            return None
        raise GatewayError.from_response(result.error)
    return result.payload


def is_not_found(
    error: BaseException | GatewayErrorResponse,
    request_not_found_text: str = DEFAULT_REQUEST_NOT_FOUND_TEXT,
) -> bool:
    """Return True when ``error`` means "this resource is absent".

    The gateway answers 404 both for a missing clip/port and for a request
    it cannot route; the latter carries ``request_not_found_text`` in its
    message and must still surface as an error.
    """
    if isinstance(error, (GatewayError, GatewayErrorResponse)):
        status, message = error.status, error.message
    else:
        text = str(error)
        if not text.startswith("404"):
            return False
        status, message = 404, text
    if status != 404:
        return False
    return request_not_found_text not in (message or "")
