"""HTTP transport: one JSON request against the gateway, classified."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

import httpx
import structlog

from quantel_gateway.errors import (
    Classification,
    ConfigurationError,
    GatewayTransportError,
    classify,
)

logger = structlog.get_logger(__name__)

Method = Literal["GET", "POST", "PUT", "DELETE"]
QueryParameters = Mapping[str, Any]


def query_params(query: QueryParameters | None) -> dict[str, str]:
    """Flatten query parameters, omitting those whose value is None."""
    params: dict[str, str] = {}
    for key, value in (query or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            params[key] = "true" if value else "false"
        else:
            params[key] = str(value)
    return params


def normalize_gateway_url(url: str) -> str:
    """Trim a trailing slash and default to ``http://`` when no scheme is given."""
    trimmed = url.strip().rstrip("/")
    if trimmed and not trimmed.startswith(("http://", "https://")):
        trimmed = "http://" + trimmed
    return trimmed


class GatewayTransport:
    """Issues single HTTP calls to the gateway with a fixed timeout.

    The ``httpx.AsyncClient`` is created lazily unless one is injected; an
    injected client is not closed by :meth:`aclose`.
    """

    def __init__(self, *, timeout: float, client: httpx.AsyncClient | None = None) -> None:
        self.timeout = timeout
        self.base_url = ""
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    def url_for(self, resource: str) -> str:
        if not self.base_url:
            raise ConfigurationError("Quantel gateway URL not set")
        return f"{self.base_url}/{resource}"

    async def send(
        self,
        method: Method,
        resource: str,
        query: QueryParameters | None = None,
        body: Any = None,
    ) -> Classification:
        """Perform one call and classify the outcome.

        Transport exceptions are returned as a ``TRANSPORT_FAILURE``
        classification rather than raised, so the caller decides.
        """
        url = self.url_for(resource)
        kwargs: dict[str, Any] = {"params": query_params(query), "timeout": self.timeout}
        if body is not None:
            kwargs["json"] = body
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning(
                "Gateway request failed",
                method=method,
                resource=resource,
                error=str(exc) or type(exc).__name__,
            )
            return classify(exc)

        try:
            payload = response.json() if response.content else None
        except ValueError as exc:
            logger.warning(
                "Gateway returned a non-JSON body",
                method=method,
                resource=resource,
                status_code=response.status_code,
            )
            return classify(
                GatewayTransportError(
                    f"Invalid JSON from {method} {resource}: {exc}",
                    status_code=response.status_code,
                )
            )

        result = classify(payload)
        if not response.is_success and result.ok:
            # An error status without the gateway's error body.
            return classify(
                GatewayTransportError(
                    f"non-200 status code response: {response.status_code}",
                    status_code=response.status_code,
                )
            )
        if not result.ok:
            logger.debug(
                "Gateway reported an error",
                method=method,
                resource=resource,
                status=result.error.status if result.error else None,
            )
        return result

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
