"""
Wall-clock tick source.

All delay-based waiting goes through a ``tick(n=1)`` coroutine so tests can
substitute virtual time (see dropwatch.testing.VirtualTicker).
"""

import asyncio


class RealTicker:
    """Tick source where one tick is ``tick_seconds`` of real time."""

    def __init__(self, tick_seconds: float = 1.0):
        self.tick_seconds = tick_seconds

    async def tick(self, n: int = 1) -> None:
        await asyncio.sleep(n * self.tick_seconds)
