"""Tunnel error taxonomy.

Every failure the tunnel feature can report derives from ``TunnelError`` so the
coordinator can confine them to its own task and keep the host serving.

Created: 2026-10-19
"""

from __future__ import annotations

from collections.abc import Sequence


class TunnelError(Exception):
    """Base class for tunnel feature failures."""


class SelectionError(TunnelError):
    """The host did not expose exactly one address for a required scheme."""

    def __init__(self, scheme: str, candidates: Sequence[str]):
        self.scheme = scheme
        self.candidates = list(candidates)
        super().__init__(
            f"Expected exactly one {scheme}:// address, found {len(self.candidates)}: "
            f"{self.candidates}"
        )


class LaunchError(TunnelError):
    """The tunnel agent binary could not be started."""

    def __init__(self, binary: str, reason: str):
        self.binary = binary
        self.reason = reason
        super().__init__(f"Could not launch {binary!r}: {reason}")


class NotReadyError(TunnelError):
    """The agent never reported a public HTTPS URL within the retry budget."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Tunnel agent did not report a public URL in {attempts} tries")
