"""Expose a local development server through an ngrok tunnel."""

from devtunnel.addresses import LocalAddresses, select_addresses
from devtunnel.coordinator import TunnelCoordinator, TunnelState, get_tunnel_coordinator
from devtunnel.errors import LaunchError, NotReadyError, SelectionError, TunnelError
from devtunnel.host import HostLifetime, OneShotSignal, watch_uvicorn
from devtunnel.poller import PublicUrlPoller
from devtunnel.retry import RetryPolicy
from devtunnel.supervisor import TunnelSupervisor, derive_host_header

__all__ = [
    "HostLifetime",
    "LaunchError",
    "LocalAddresses",
    "NotReadyError",
    "OneShotSignal",
    "PublicUrlPoller",
    "RetryPolicy",
    "SelectionError",
    "TunnelCoordinator",
    "TunnelError",
    "TunnelState",
    "TunnelSupervisor",
    "derive_host_header",
    "get_tunnel_coordinator",
    "select_addresses",
    "watch_uvicorn",
]
