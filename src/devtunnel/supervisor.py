"""Supervision of the tunnel agent child process.

The agent (``ngrok`` by default) is started as::

    ngrok http https://localhost:5001 --log stdout --host-header=localhost:5001

Its stdout goes to the ``devtunnel.agent`` logger at DEBUG, stderr at ERROR.
The process lives inside the task returned by ``TunnelSupervisor.start()``: it
is terminated when the cancel signal fires or when that task is cancelled, so
it cannot outlive its supervisor.

Created: 2026-10-19
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from devtunnel.config import Settings
from devtunnel.errors import LaunchError

logger = logging.getLogger(__name__)
agent_logger = logging.getLogger("devtunnel.agent")


class CancelSignal(Protocol):
    async def wait(self) -> None: ...


def derive_host_header(url: str) -> str:
    """Return ``host:port`` for a local URL.

    ``https://localhost:44393/``, ``https://localhost:44393`` and
    ``localhost:44393`` all give ``localhost:44393``.
    """
    _, sep, rest = url.partition("://")
    return (rest if sep else url).strip("/")


async def _pump(stream: asyncio.StreamReader, level: int) -> None:
    """Forward a child stream to the agent logger line by line."""
    while True:
        try:
            line = await stream.readline()
        except ValueError:
            # Line longer than the stream limit; the reader drops it
            agent_logger.debug("Skipped oversized agent output line")
            continue
        if not line:
            return
        text = line.decode("utf-8", errors="replace").rstrip()
        if text:
            agent_logger.log(level, text)


class TunnelSupervisor:
    """Launches the tunnel agent and keeps it bound to a cancel signal."""

    def __init__(
        self,
        binary: str = "ngrok",
        subcommand: str = "http",
        terminate_timeout: float = 5.0,
    ):
        self.binary = binary
        self.subcommand = subcommand
        self.terminate_timeout = terminate_timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> TunnelSupervisor:
        return cls(
            binary=settings.agent_binary,
            subcommand=settings.agent_subcommand,
            terminate_timeout=settings.terminate_timeout,
        )

    def build_command(self, target_url: str) -> list[str]:
        # No shell is involved, so the host header stays one literal argument
        return [
            self.binary,
            self.subcommand,
            target_url,
            "--log",
            "stdout",
            f"--host-header={derive_host_header(target_url)}",
        ]

    def start(self, target_url: str, cancel: CancelSignal) -> asyncio.Task[int]:
        """Launch the agent for ``target_url`` in a background task.

        The task returns the agent's exit code once the process has exited, or
        fails with ``LaunchError`` if the binary could not be started.
        """
        return asyncio.create_task(self._supervise(target_url, cancel), name="tunnel-agent")

    async def _launch(self, command: list[str]) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise LaunchError(self.binary, e.strerror or str(e)) from e

    async def _supervise(self, target_url: str, cancel: CancelSignal) -> int:
        command = self.build_command(target_url)
        logger.info("Starting tunnel agent for %s", target_url)
        logger.debug("Agent command: %s", command)
        process = await self._launch(command)

        pumps = [
            asyncio.create_task(_pump(process.stdout, logging.DEBUG)),
            asyncio.create_task(_pump(process.stderr, logging.ERROR)),
        ]
        exited = asyncio.create_task(process.wait())
        cancelled = asyncio.create_task(cancel.wait())
        try:
            await asyncio.wait({exited, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancelled.cancel()
            if process.returncode is None:
                await self._terminate(process)
            exited.cancel()
            _, pending = await asyncio.wait(pumps, timeout=1.0)
            for task in pending:
                task.cancel()

        logger.info("Tunnel agent exited with code %s", process.returncode)
        return process.returncode

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        logger.info("Stopping tunnel agent (pid %s)...", process.pid)
        try:
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=self.terminate_timeout)
            except asyncio.TimeoutError:
                logger.warning("Tunnel agent ignored SIGTERM, killing it")
                process.kill()
                await process.wait()
        except ProcessLookupError:
            pass  # Already dead
