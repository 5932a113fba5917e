"""Discovery of the public URL through the agent's local status API.

The agent answers ``GET /api/tunnels`` with::

    {"tunnels": [{"public_url": "https://abcd.ngrok.io", "proto": "https", ...}]}

Right after launch the API may not be listening yet, or may list no tunnels,
so it is polled under a ``RetryPolicy``.

Created: 2026-10-19
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from devtunnel.config import DEFAULT_API_URL, Settings
from devtunnel.retry import RetryPolicy

logger = logging.getLogger(__name__)


def find_public_url(payload: Any) -> str | None:
    """Return the first ``https://`` public URL in a status response, if any."""
    if not isinstance(payload, dict):
        return None
    tunnels = payload.get("tunnels")
    if not isinstance(tunnels, list):
        return None
    for tunnel in tunnels:
        if not isinstance(tunnel, dict):
            continue
        url = tunnel.get("public_url")
        if isinstance(url, str) and url.startswith("https://"):
            return url
    return None


class PublicUrlPoller:
    """Polls the agent status API until it reports a public HTTPS URL."""

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        policy: RetryPolicy | None = None,
        timeout: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url
        self.policy = policy or RetryPolicy()
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> PublicUrlPoller:
        return cls(
            api_url=settings.api_url,
            policy=RetryPolicy(max_attempts=settings.poll_attempts, delay=settings.poll_delay),
            timeout=settings.request_timeout,
        )

    async def fetch_public_url(self, client: httpx.AsyncClient) -> str | None:
        """Query the status API once."""
        response = await client.get(self.api_url)
        response.raise_for_status()
        return find_public_url(response.json())

    async def resolve_public_url(self) -> str:
        """Return the agent's public HTTPS URL.

        Raises:
            NotReadyError: if no attempt within the retry budget found one.
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:

            async def attempt(n: int) -> str | None:
                logger.debug("Get tunnels attempt: %d", n)
                return await self.fetch_public_url(client)

            return await self.policy.run(attempt)
