"""Runtime configuration for devtunnel.

Values can be overridden with ``DEVTUNNEL_``-prefixed environment variables,
e.g. ``DEVTUNNEL_AGENT_BINARY=/opt/ngrok/ngrok``.

Created: 2026-10-19
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_URL = "http://127.0.0.1:4040/api/tunnels"


class Settings(BaseSettings):
    """Tunnel agent and polling settings."""

    model_config = SettingsConfigDict(env_prefix="DEVTUNNEL_")

    enabled: bool = Field(
        default=True,
        description="Start the tunnel alongside the host application",
    )
    agent_binary: str = Field(
        default="ngrok",
        description="Tunnel agent executable, resolved on PATH",
    )
    agent_subcommand: str = Field(
        default="http",
        description="Agent expose-http subcommand; ngrok names it \"http\"",
    )
    api_url: str = Field(
        default=DEFAULT_API_URL,
        description="Agent status endpoint listing active tunnels",
    )
    poll_attempts: int = Field(
        default=10,
        ge=1,
        description="Maximum number of status API queries",
    )
    poll_delay: float = Field(
        default=0.2,
        ge=0.0,
        description="Seconds to wait between status API queries",
    )
    request_timeout: float = Field(
        default=2.0,
        gt=0.0,
        description="Timeout in seconds for a single status API query",
    )
    terminate_timeout: float = Field(
        default=5.0,
        gt=0.0,
        description="Seconds to wait after SIGTERM before killing the agent",
    )


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
