"""Host application lifecycle as seen by the tunnel.

The coordinator never talks to the web server directly. It observes a
``HostLifetime``: a one-shot *started* signal carrying the bound addresses and a
one-shot *stopping* signal. ``watch_uvicorn`` feeds a lifetime from running
uvicorn servers; other hosts call ``notify_started`` / ``notify_stopping``
themselves.

Created: 2026-10-19
"""

from __future__ import annotations

import asyncio
import logging
import socket
from collections.abc import Iterable

import uvicorn

logger = logging.getLogger(__name__)

_WILDCARD_HOSTS = {"0.0.0.0", "::", ""}


class OneShotSignal:
    """A signal that fires at most once and stays fired.

    Unlike ``asyncio.Event`` it cannot be cleared, so a waiter that arrives
    late still observes the earlier firing.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def fired(self) -> bool:
        return self._event.is_set()

    def fire(self) -> bool:
        """Fire the signal. Returns False if it had already fired."""
        if self._event.is_set():
            return False
        self._event.set()
        return True

    async def wait(self) -> None:
        await self._event.wait()


class HostLifetime:
    """Start/stop notifications and bound addresses of the host server."""

    def __init__(self) -> None:
        self.started = OneShotSignal()
        self.stopping = OneShotSignal()
        self._addresses: tuple[str, ...] = ()

    @property
    def addresses(self) -> tuple[str, ...]:
        """Addresses the host is bound to. Only known once it has started."""
        if not self.started.fired:
            raise RuntimeError("Host addresses are not available before the host has started")
        return self._addresses

    def notify_started(self, addresses: Iterable[str]) -> None:
        if self.started.fired:
            logger.debug("Ignoring duplicate host started notification")
            return
        self._addresses = tuple(addresses)
        self.started.fire()
        logger.debug("Host started on %s", ", ".join(self._addresses))

    def notify_stopping(self) -> None:
        if self.stopping.fire():
            logger.debug("Host stopping")


def _format_address(scheme: str, host: str, port: int) -> str:
    if host in _WILDCARD_HOSTS:
        host = "localhost"
    elif ":" in host and not host.startswith("["):
        host = f"[{host}]"
    return f"{scheme}://{host}:{port}"


def _server_addresses(server: uvicorn.Server) -> list[str]:
    scheme = "https" if server.config.is_ssl else "http"
    socknames = [
        sock.getsockname()
        for listener in server.servers
        for sock in listener.sockets
        if sock.family in (socket.AF_INET, socket.AF_INET6)
    ]
    ports = {sockname[1] for sockname in socknames}
    if len(ports) == 1 and server.config.host:
        # "localhost" binds both 127.0.0.1 and ::1; report it once, as configured
        return [_format_address(scheme, server.config.host, ports.pop())]
    return [_format_address(scheme, sockname[0], sockname[1]) for sockname in socknames]


def uvicorn_addresses(*servers: uvicorn.Server) -> list[str]:
    """List the addresses the given started uvicorn servers listen on.

    Each server contributes one address built from its configured host and
    bound port. Sockets are listed individually only when they ended up on
    different ports, e.g. a dual-stack bind to port 0.
    """
    addresses: list[str] = []
    for server in servers:
        for address in _server_addresses(server):
            if address not in addresses:
                addresses.append(address)
    return addresses


async def watch_uvicorn(
    lifetime: HostLifetime,
    *servers: uvicorn.Server,
    poll_interval: float = 0.1,
) -> None:
    """Drive ``lifetime`` from one or more uvicorn servers.

    Fires *started* once every server is up, then *stopping* as soon as any of
    them is asked to exit. Meant to run as a task next to ``server.serve()``.
    """
    if not servers:
        raise ValueError("watch_uvicorn needs at least one server")

    while not all(s.started for s in servers):
        if any(s.should_exit for s in servers):
            lifetime.notify_stopping()
            return
        await asyncio.sleep(poll_interval)

    lifetime.notify_started(uvicorn_addresses(*servers))

    while not any(s.should_exit for s in servers):
        await asyncio.sleep(poll_interval)
    lifetime.notify_stopping()
