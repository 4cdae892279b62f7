"""
Discovery-and-process scheduler.

One pass visits every task in the mapping, in mapping order:

1. task.find()                  - candidate paths right now
2. nothing found -> done        - no retry within this pass
3. detector.stabilize(find)     - wait for the files to stop changing
4. task.move(paths) -> pwd      - relocate into the task's working dir
5. task.run(pwd)

Tasks run one after another on the shared tick source, so a later task's
find() sees files that appeared while earlier tasks were stabilizing.
Warn-and-continue semantics: a failing task never blocks the others.
"""

import logging
from typing import Awaitable, Dict, List, Mapping, Optional, Protocol

from .errors import SchedulerPassError
from .inspector import FileTreeInspector
from .stability import StabilityDetector, Tick

logger = logging.getLogger(__name__)


class Task(Protocol):
    """Capability contract consumed by the scheduler."""

    pwd: str

    def find(self) -> Awaitable[List[str]]: ...

    def move(self, paths: List[str]) -> Awaitable[str]: ...

    def run(self, pwd: str) -> Awaitable[None]: ...


class Scheduler:
    """
    Runs find -> stabilize -> move -> run for each task.

    Args:
        detector: Stability detector; a default one with the real
            filesystem inspector is created if omitted
        tick: Tick source used between passes by run_forever();
            defaults to the detector's
    """

    def __init__(
        self,
        detector: Optional[StabilityDetector] = None,
        tick: Optional[Tick] = None,
    ):
        if detector is None:
            detector = StabilityDetector(FileTreeInspector(), tick=tick)

        self.detector = detector
        self.tick = tick or detector.tick

    async def run_pass(self, tasks: Mapping[str, Task]) -> None:
        """
        Perform one discovery-and-process pass over every task.

        Raises:
            SchedulerPassError: After the pass, if any task failed
        """
        failures: Dict[str, BaseException] = {}

        for name, task in list(tasks.items()):
            try:
                await self.process_task(name, task)
            except Exception as e:
                logger.exception(f"[Scheduler] Task '{name}' failed: {e}")
                failures[name] = e

        if failures:
            raise SchedulerPassError(failures)

    async def process_task(self, name: str, task: Task) -> Optional[str]:
        """
        Process a single task.

        Returns:
            The working directory the task ran in, or None if nothing was found
        """
        candidates = await task.find()
        if not candidates:
            logger.debug(f"[Scheduler] Task '{name}': nothing to do")
            return None

        logger.info(
            f"[Scheduler] Task '{name}': found {len(candidates)} candidate(s), waiting for stability"
        )
        paths = await self.detector.stabilize(task.find)

        pwd = await task.move(paths)
        logger.info(f"[Scheduler] Task '{name}': moved {len(paths)} path(s) into {pwd}")

        await task.run(pwd)
        logger.info(f"[Scheduler] Task '{name}': run complete in {pwd}")
        return pwd

    async def run_forever(
        self,
        tasks: Mapping[str, Task],
        interval_ticks: int = 5,
        max_passes: Optional[int] = None,
    ) -> int:
        """
        Repeat passes separated by interval_ticks ticks.

        Pass failures are logged and do not stop the loop.

        Returns:
            Number of passes completed (only reached when max_passes is set)
        """
        passes = 0

        while max_passes is None or passes < max_passes:
            try:
                await self.run_pass(tasks)
            except SchedulerPassError as e:
                logger.warning(f"[Scheduler] {e}")
            passes += 1

            if max_passes is None or passes < max_passes:
                await self.tick(interval_ticks)

        return passes
