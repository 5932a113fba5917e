# Tunnel status schemas.
# Created: 2026-10-19

from __future__ import annotations

from pydantic import BaseModel


class TunnelStatusResponse(BaseModel):
    """Tunnel status."""

    state: str
    active: bool = False
    url: str | None = None
