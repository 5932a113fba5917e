import asyncio

import pytest

from devtunnel.config import get_settings
from devtunnel.coordinator import reset_tunnel_coordinator


class FakeProcess:
    """Stands in for ``asyncio.subprocess.Process`` of a long-running agent."""

    def __init__(self, pid: int = 4242):
        self.pid = pid
        self.returncode = None
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self.terminate_called = False
        self.kill_called = False
        self._exited = asyncio.Event()

    def exit(self, code: int) -> None:
        if self.returncode is not None:
            return
        self.returncode = code
        self.stdout.feed_eof()
        self.stderr.feed_eof()
        self._exited.set()

    def terminate(self) -> None:
        self.terminate_called = True
        self.exit(-15)

    def kill(self) -> None:
        self.kill_called = True
        self.exit(-9)

    async def wait(self) -> int:
        await self._exited.wait()
        return self.returncode


@pytest.fixture(autouse=True)
def _reset_singletons():
    get_settings.cache_clear()
    yield
    reset_tunnel_coordinator()
    get_settings.cache_clear()


@pytest.fixture
def fake_process():
    """Factory for fake agent processes; call it inside the running test loop."""
    return FakeProcess
