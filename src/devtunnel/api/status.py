# Tunnel status router.
# Created: 2026-10-19

from __future__ import annotations

from fastapi import APIRouter

from devtunnel.api.schemas import TunnelStatusResponse

router = APIRouter(tags=["Tunnel"])


@router.get("/tunnel/status", response_model=TunnelStatusResponse)
async def get_tunnel_status():
    """Get the state and public URL of the development tunnel."""
    from devtunnel.coordinator import get_tunnel_coordinator

    status = get_tunnel_coordinator().get_status()
    return TunnelStatusResponse(
        state=status["state"],
        active=status.get("active", False),
        url=status.get("url"),
    )
