"""Tunnel lifecycle coordinator.

Runs the tunnel as an optional background capability of a host server:

1. wait for the host to start and pick its http/https addresses,
2. launch the agent against the https address while polling its status API,
3. log the public URL, then hold the agent until the host stops.

Failures are logged and leave the coordinator in ``TunnelState.FAILED``; they
never propagate into the host, which keeps serving locally.

Created: 2026-10-19
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from devtunnel.addresses import select_addresses
from devtunnel.config import Settings, get_settings
from devtunnel.errors import LaunchError, NotReadyError, SelectionError, TunnelError
from devtunnel.host import HostLifetime, OneShotSignal
from devtunnel.poller import PublicUrlPoller
from devtunnel.supervisor import TunnelSupervisor

logger = logging.getLogger(__name__)


class TunnelState(str, Enum):
    WAITING_FOR_HOST_START = "waiting_for_host_start"
    RESOLVING_ADDRESSES = "resolving_addresses"
    TUNNEL_STARTING = "tunnel_starting"
    READY = "ready"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


class TunnelCoordinator:
    """Ties one tunnel agent session to the lifetime of the host."""

    def __init__(
        self,
        lifetime: HostLifetime,
        settings: Settings | None = None,
        supervisor: TunnelSupervisor | None = None,
        poller: PublicUrlPoller | None = None,
    ):
        self.settings = settings or get_settings()
        self.lifetime = lifetime
        self.supervisor = supervisor or TunnelSupervisor.from_settings(self.settings)
        self.poller = poller or PublicUrlPoller.from_settings(self.settings)
        self.state = TunnelState.WAITING_FOR_HOST_START
        self.public_url: str | None = None
        self.error: TunnelError | None = None
        self._task: asyncio.Task | None = None
        # Fired on host shutdown or when startup gives up; terminates the agent
        self._agent_cancel = OneShotSignal()

    def _fail(self, error: TunnelError) -> None:
        self.error = error
        self.state = TunnelState.FAILED
        logger.error("Tunnel unavailable: %s", error)

    async def run(self) -> None:
        """Run the whole tunnel lifecycle. Never raises ``TunnelError``."""
        await self.lifetime.started.wait()

        self.state = TunnelState.RESOLVING_ADDRESSES
        try:
            local = select_addresses(self.lifetime.addresses)
        except SelectionError as e:
            self._fail(e)
            return

        self.state = TunnelState.TUNNEL_STARTING
        logger.info("Starting tunnel for %s", local.https)
        forward_stop = asyncio.create_task(self._forward_host_stop())
        agent = self.supervisor.start(local.https, self._agent_cancel)
        polling = asyncio.create_task(self.poller.resolve_public_url())
        try:
            await asyncio.wait({agent, polling}, return_when=asyncio.FIRST_COMPLETED)

            if not polling.done():
                polling.cancel()
                await asyncio.gather(polling, return_exceptions=True)
                self._agent_finished_early(agent)
                return

            try:
                self.public_url = polling.result()
            except NotReadyError as e:
                self._fail(e)
                self._agent_cancel.fire()
                await asyncio.gather(agent, return_exceptions=True)
                return

            self.state = TunnelState.READY
            logger.info("Public tunnel URL: %s", self.public_url)

            await self._wait_for_agent(agent)
        finally:
            forward_stop.cancel()
            polling.cancel()
            if not agent.done():
                self._agent_cancel.fire()
                await asyncio.gather(agent, return_exceptions=True)

    def _agent_finished_early(self, agent: asyncio.Task) -> None:
        error = agent.exception()
        if error is None and self.lifetime.stopping.fired:
            self.state = TunnelState.STOPPED
            logger.info("Host stopped before the tunnel was ready")
        elif isinstance(error, LaunchError):
            self._fail(error)
        elif error is not None:
            self._fail(TunnelError(f"Tunnel agent failed: {error}"))
        else:
            self._fail(
                TunnelError(f"Tunnel agent exited with code {agent.result()} before it was ready")
            )

    async def _wait_for_agent(self, agent: asyncio.Task) -> None:
        stopping = asyncio.create_task(self.lifetime.stopping.wait())
        try:
            await asyncio.wait({agent, stopping}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopping.cancel()

        if not agent.done():
            self.state = TunnelState.STOPPING
        results = await asyncio.gather(agent, return_exceptions=True)
        if not self.lifetime.stopping.fired:
            logger.warning("Tunnel agent stopped unexpectedly (%s)", results[0])
        self.state = TunnelState.STOPPED
        logger.info("Tunnel stopped")

    async def _forward_host_stop(self) -> None:
        await self.lifetime.stopping.wait()
        self._agent_cancel.fire()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Schedule ``run()`` in the background and return its task."""
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name="tunnel-coordinator")
        return self._task

    async def stop(self) -> None:
        """Signal host shutdown and wait for the agent to exit."""
        self.lifetime.notify_stopping()
        if self._task is None:
            return
        if not self.lifetime.started.fired:
            # Still waiting for the host; there is no agent to stop
            self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        if self.state not in (TunnelState.FAILED, TunnelState.STOPPED):
            self.state = TunnelState.STOPPED

    def get_status(self) -> dict:
        """Get current tunnel status."""
        active = self.state == TunnelState.READY and self.running
        return {"state": self.state.value, "active": active, "url": self.public_url}


# Global instance
_coordinator: TunnelCoordinator | None = None


def get_tunnel_coordinator(
    lifetime: HostLifetime | None = None,
    settings: Settings | None = None,
) -> TunnelCoordinator:
    """Return the process-wide coordinator, creating it on first use.

    Passing a ``lifetime`` or ``settings`` that the cached coordinator was not
    built with replaces it, as long as it is idle (never started, or its run
    has finished).

    Raises:
        RuntimeError: if a different host lifetime is requested while the
            cached coordinator is still running.
    """
    global _coordinator
    current = _coordinator
    if current is not None:
        rebind = (lifetime is not None and lifetime is not current.lifetime) or (
            settings is not None and settings is not current.settings
        )
        if not rebind:
            return current
        if current.running:
            raise RuntimeError("A tunnel is already running for another host lifetime")
        logger.debug("Replacing idle tunnel coordinator")

    _coordinator = TunnelCoordinator(lifetime or HostLifetime(), settings=settings)
    return _coordinator


async def shutdown_tunnel_coordinator() -> None:
    """Stop the process-wide coordinator's agent, if there is one.

    The instance stays cached so its final status can still be queried.
    """
    if _coordinator is not None:
        await _coordinator.stop()


def reset_tunnel_coordinator() -> None:
    """Forget the process-wide coordinator (test teardown)."""
    global _coordinator
    _coordinator = None
