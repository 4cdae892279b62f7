"""
File set stability detection.

Uses polling to determine when a set of files has finished copying/writing.

Two phases, repeated until both agree:

1. Size phase: list candidates, size everything beneath them, and poll
   once per tick until two consecutive size snapshots are equal.
2. Checksum phase: checksum exactly the files in the stable size snapshot.
   A checksum change sends us back to the size phase. An unchanged
   checksum must hold for ``confirmation_rounds`` further rounds, each
   separated by a dwell of ``dwell_ticks`` ticks.

Once confirmed, candidates are listed one final time and that fresh
listing is returned.

Inspector failures propagate unchanged. There is no retry here: a race
with a writer is expected to show up as a changed snapshot on the next
poll, not as an error.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Mapping, Optional

from .models import FileChecksumSnapshot, FileSizeSnapshot, StabilitySettings
from .ticker import RealTicker

logger = logging.getLogger(__name__)

FindCandidates = Callable[[], Awaitable[List[str]]]
Tick = Callable[..., Awaitable[None]]


def snapshots_equal(lhs: Mapping, rhs: Mapping) -> bool:
    """Same key set and same value per key; order never matters."""
    return dict(lhs) == dict(rhs)


class StabilityDetector:
    """
    Poll-based stability detector for a discovered file set.

    Args:
        inspector: Provides get_sizes_under(path) and get_checksum(path)
        tick: Coroutine function ``tick(n=1)``; defaults to a RealTicker
        settings: Dwell length and confirmation count

    The detector holds no per-run state; concurrent stabilize() calls are
    independent.
    """

    def __init__(
        self,
        inspector,
        tick: Optional[Tick] = None,
        settings: Optional[StabilitySettings] = None,
    ):
        self.inspector = inspector
        self.settings = settings or StabilitySettings()
        self.tick = tick or RealTicker(self.settings.tick_seconds).tick

    async def stabilize(self, find_candidates: FindCandidates) -> List[str]:
        """
        Wait until the candidates' sizes and checksums stop changing.

        Returns:
            A fresh call of find_candidates() made after stability was confirmed
        """
        previous_sizes: FileSizeSnapshot = {}
        previous_sums: FileChecksumSnapshot = {}
        polls = 0

        while True:
            sizes = await self._gather_sizes(find_candidates)
            polls += 1

            if not snapshots_equal(previous_sizes, sizes):
                logger.debug(
                    f"[Stability] Poll {polls}: {len(sizes)} file(s), sizes changed"
                )
                previous_sizes = sizes
                await self.tick()
                continue

            remaining = self.settings.confirmation_rounds

            while True:
                sums = await self._gather_checksums(sizes)

                if not snapshots_equal(previous_sums, sums):
                    logger.debug(
                        f"[Stability] Poll {polls}: checksums changed, re-polling sizes"
                    )
                    previous_sums = sums
                    break

                if remaining < 1:
                    paths = await find_candidates()
                    logger.info(
                        f"[Stability] {len(sizes)} file(s) stable after {polls} poll(s)"
                    )
                    return paths

                remaining -= 1
                await self.tick(self.settings.dwell_ticks)

    async def _gather_sizes(self, find_candidates: FindCandidates) -> FileSizeSnapshot:
        paths = await find_candidates()
        maps = await asyncio.gather(
            *(self.inspector.get_sizes_under(path) for path in paths)
        )

        combined: FileSizeSnapshot = {}
        for sizes in maps:
            combined.update(sizes)
        return combined

    async def _gather_checksums(self, sizes: FileSizeSnapshot) -> FileChecksumSnapshot:
        paths = list(sizes)
        sums = await asyncio.gather(
            *(self.inspector.get_checksum(path) for path in paths)
        )
        return dict(zip(paths, sums))
