#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Optional

from quantel_gateway import QuantelGateway
from quantel_gateway.logging import configure_logging
from quantel_gateway.settings import settings


async def run(args: argparse.Namespace) -> None:
    statuses: list[tuple[bool, Optional[str]]] = []

    def on_status(connected: bool, message: Optional[str]) -> None:
        statuses.append((connected, message))
        print(f"status: connected={connected} message={message}")

    async with QuantelGateway(check_status_interval=args.interval) as gateway:
        await gateway.init(args.gateway_url, args.isa_urls, args.zone_id, args.server_id)
        print(f"connected to ISA via {gateway.connection_details.href}")

        zones = await gateway.get_zones()
        print(f"zones: {[zone.zone_name for zone in zones]}")
        server = await gateway.get_server()
        if server is None:
            raise RuntimeError(f"Server {args.server_id} missing after init")
        print(f"server {server.ident}: {server.name} channels={server.num_channels} down={server.down}")

        if args.port:
            gateway.set_monitored_ports({args.port: [args.channel]})
        gateway.monitor_server_status(on_status)
        await asyncio.sleep(args.interval * 2)
        if not statuses:
            raise RuntimeError("No status reported")

        if args.port:
            await gateway.create_port(args.port, args.channel)
            port = await gateway.get_port(args.port)
            print(f"port {args.port}: {port.status if port else 'missing'}")
            await gateway.release_port(args.port)


def main() -> int:
    parser = argparse.ArgumentParser(description="Smoke test against a live Quantel gateway")
    parser.add_argument("--gateway-url", default=settings.gateway_url() or "http://localhost:3000")
    parser.add_argument("--isa-urls", nargs="+", default=settings.isa_urls())
    parser.add_argument("--zone-id", default=settings.zone_id())
    parser.add_argument("--server-id", type=int, default=settings.server_id())
    parser.add_argument("--port", default="", help="Create, query and release this port")
    parser.add_argument("--channel", type=int, default=0)
    parser.add_argument("--interval", type=float, default=1.0)
    args = parser.parse_args()

    configure_logging()
    try:
        asyncio.run(run(args))
    except Exception as exc:
        print(f"Smoke test failed: {exc}", file=sys.stderr)
        return 1

    print("Smoke test passed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
