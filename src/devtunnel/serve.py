"""Run an ASGI app on http and https with a development tunnel attached.

The tunnel needs one plain and one TLS listener, so two uvicorn servers share
the app. ``watch_uvicorn`` turns their startup/shutdown into the host lifetime
the coordinator waits on.
"""

from __future__ import annotations

import asyncio
import logging

import uvicorn

from devtunnel.config import Settings, get_settings
from devtunnel.coordinator import get_tunnel_coordinator, shutdown_tunnel_coordinator
from devtunnel.host import HostLifetime, watch_uvicorn

logger = logging.getLogger(__name__)


def build_servers(
    app,
    host: str,
    http_port: int,
    https_port: int,
    ssl_certfile: str,
    ssl_keyfile: str,
) -> tuple[uvicorn.Server, uvicorn.Server]:
    """Create the plain and TLS uvicorn servers for ``app``."""
    http = uvicorn.Server(uvicorn.Config(app, host=host, port=http_port, log_level="warning"))
    https = uvicorn.Server(
        uvicorn.Config(
            app,
            host=host,
            port=https_port,
            ssl_certfile=ssl_certfile,
            ssl_keyfile=ssl_keyfile,
            log_level="warning",
        )
    )
    return http, https


async def _serve_all(servers) -> None:
    """Serve until any server exits, then shut the others down too."""
    serving = [asyncio.create_task(s.serve()) for s in servers]
    try:
        await asyncio.wait(serving, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for server in servers:
            server.should_exit = True
        await asyncio.gather(*serving, return_exceptions=True)


async def serve_with_tunnel(
    app,
    *,
    ssl_certfile: str,
    ssl_keyfile: str,
    host: str = "127.0.0.1",
    http_port: int = 5000,
    https_port: int = 5001,
    settings: Settings | None = None,
) -> None:
    """Serve ``app`` until interrupted, tunnelling the https listener."""
    settings = settings or get_settings()
    servers = build_servers(app, host, http_port, https_port, ssl_certfile, ssl_keyfile)

    if not settings.enabled:
        logger.info("Tunnel disabled, serving locally only")
        await _serve_all(servers)
        return

    lifetime = HostLifetime()
    coordinator = get_tunnel_coordinator(lifetime, settings=settings)
    coordinator.start()
    watcher = asyncio.create_task(watch_uvicorn(lifetime, *servers))

    try:
        await _serve_all(servers)
    finally:
        await asyncio.gather(watcher, return_exceptions=True)
        await shutdown_tunnel_coordinator()
