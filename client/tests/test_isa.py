"""Tests for the ISA connection manager."""

from __future__ import annotations

import httpx
import pytest

from quantel_gateway.errors import ConfigurationError, GatewayError
from quantel_gateway.isa import ISAConnectionManager, normalize_isa_endpoints
from quantel_gateway.transport import GatewayTransport

from conftest import GATEWAY_URL, ISA_URLS, FakeGateway, connection_details, error_body

CONNECT_PATH = "/connect/isa-master:2096,isa-backup:2096"


@pytest.fixture
def isa(http_client: httpx.AsyncClient) -> ISAConnectionManager:
    transport = GatewayTransport(timeout=1.0, client=http_client)
    transport.base_url = GATEWAY_URL
    return ISAConnectionManager(transport)


class TestNormalizeEndpoints:
    def test_strips_scheme_and_trailing_slash(self) -> None:
        assert normalize_isa_endpoints(["http://isa-master:2096/", "HTTPS://isa-backup:2096"]) == [
            "isa-master:2096",
            "isa-backup:2096",
        ]

    def test_splits_comma_separated_string(self) -> None:
        assert normalize_isa_endpoints("isa-master:2096, isa-backup:2096,") == ISA_URLS

    def test_empty_values(self) -> None:
        assert normalize_isa_endpoints(None) == []
        assert normalize_isa_endpoints("") == []
        assert normalize_isa_endpoints(["", "  "]) == []


class TestConnect:
    @pytest.mark.anyio
    async def test_connect_posts_ordered_endpoints(
        self, isa: ISAConnectionManager, fake_gateway: FakeGateway
    ) -> None:
        isa.configure(["http://isa-master:2096", "isa-backup:2096/"])
        details = await isa.connect()

        [request] = fake_gateway.connect_calls()
        assert request.url.path == CONNECT_PATH
        assert details.href == "http://isa-master:2096"
        assert details.isa_ior == "IOR:0123"
        assert isa.connection_details is details

    @pytest.mark.anyio
    async def test_empty_endpoint_list_fails_without_a_request(
        self, isa: ISAConnectionManager, fake_gateway: FakeGateway
    ) -> None:
        isa.configure([])
        with pytest.raises(ConfigurationError, match="ISA URLs not set"):
            await isa.connect()
        assert fake_gateway.requests == []

    @pytest.mark.anyio
    async def test_gateway_error_propagates(
        self, isa: ISAConnectionManager, fake_gateway: FakeGateway
    ) -> None:
        fake_gateway.respond("POST", CONNECT_PATH, (500, error_body(500, "CORBA.TRANSIENT")))
        isa.configure(ISA_URLS)
        with pytest.raises(GatewayError) as info:
            await isa.connect()
        assert info.value.status == 500
        assert isa.connection_details is None

    @pytest.mark.anyio
    async def test_reconnect_replays_current_endpoints(
        self, isa: ISAConnectionManager, fake_gateway: FakeGateway
    ) -> None:
        fake_gateway.respond(
            "POST",
            CONNECT_PATH,
            connection_details(),
            connection_details(href="http://isa-backup:2096", robin=1),
        )
        isa.configure(ISA_URLS)
        await isa.connect()
        details = await isa.reconnect()

        assert isa.reconnect_count == 1
        assert details.robin == 1
        assert [r.url.path for r in fake_gateway.connect_calls()] == [CONNECT_PATH, CONNECT_PATH]

    @pytest.mark.anyio
    async def test_clear(self, isa: ISAConnectionManager) -> None:
        isa.configure(ISA_URLS)
        isa.clear()
        assert isa.endpoints == []
        assert isa.connection_details is None
