"""Bounded retry with a fixed delay between attempts."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from devtunnel.errors import NotReadyError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_present(result: object) -> bool:
    return result is not None


@dataclass(frozen=True)
class RetryPolicy:
    """Try up to ``max_attempts`` times, ``delay`` seconds apart.

    An attempt that raises counts as "not ready"; it is logged at debug and the
    loop moves on. Only exhausting the budget is reported, as ``NotReadyError``.
    """

    max_attempts: int = 10
    delay: float = 0.2

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay < 0:
            raise ValueError("delay must not be negative")

    async def run(
        self,
        attempt: Callable[[int], Awaitable[T]],
        is_ready: Callable[[T], bool] = _is_present,
    ) -> T:
        """Call ``attempt(n)`` for n = 1.. until ``is_ready`` accepts its result."""
        for n in range(1, self.max_attempts + 1):
            try:
                result = await attempt(n)
            except Exception as e:
                logger.debug("Attempt %d/%d failed: %s", n, self.max_attempts, e)
            else:
                if is_ready(result):
                    return result
            if n < self.max_attempts:
                await asyncio.sleep(self.delay)

        raise NotReadyError(self.max_attempts)
