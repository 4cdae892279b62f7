"""
Test doubles for deterministic runs.

VirtualTicker   - logical clock; callbacks fire at scheduled tick counts
MemoryInspector - in-memory filesystem (path -> contents) with inspector API
SpyLogger       - records process tree events, outline and run task
TaskSpy         - scheduler task that records find/move/run calls

Usage:
    ticker = VirtualTicker()
    inspector = MemoryInspector()
    inspector.files["a.txt"] = "hello"
    ticker.at(10, lambda: inspector.files.__setitem__("b.txt", "later"))

    detector = StabilityDetector(inspector, tick=ticker.tick)
"""

import asyncio
import hashlib
import inspect
from typing import Any, Callable, Dict, List, Optional, Tuple

from .execution.models import LogEvent, TreeOutline
from .watchfolders.errors import InspectorError
from .watchfolders.models import FileSizeSnapshot


class VirtualTicker:
    """
    Logical clock.

    ``tick(n)`` advances the counter one unit at a time, running every
    callback scheduled for each unit reached, then yields to the loop once.
    """

    def __init__(self):
        self.now = 0
        self.ticks_requested = 0
        self._callbacks: Dict[int, List[Callable[[], Any]]] = {}

    def at(self, time: int, callback: Callable[[], Any]) -> None:
        """Run callback when the counter reaches ``time``."""
        self._callbacks.setdefault(time, []).append(callback)

    async def tick(self, n: int = 1) -> None:
        self.ticks_requested += 1
        for _ in range(n):
            self.now += 1
            for callback in self._callbacks.pop(self.now, []):
                result = callback()
                if inspect.isawaitable(result):
                    await result
        await asyncio.sleep(0)


class MemoryInspector:
    """
    Inspector over an in-memory filesystem.

    ``files`` maps a path to its contents. Everything whose key starts with
    the requested path counts as being beneath it.
    """

    def __init__(self, files: Optional[Dict[str, str]] = None):
        self.files: Dict[str, str] = dict(files or {})
        self.size_calls = 0
        self.checksum_calls = 0

    async def get_sizes_under(self, path: str) -> FileSizeSnapshot:
        self.size_calls += 1
        sizes = {
            key: len(contents)
            for key, contents in self.files.items()
            if key.startswith(path)
        }
        if not sizes:
            raise InspectorError(path, "No such file or directory")
        return sizes

    async def get_checksum(self, path: str) -> str:
        self.checksum_calls += 1
        if path not in self.files:
            raise InspectorError(path, "No such file")
        return hashlib.sha256(self.files[path].encode()).hexdigest()


class SpyLogger:
    """Process tree logger that keeps everything in memory."""

    def __init__(self):
        self.events: List[LogEvent] = []
        self.outline: Optional[TreeOutline] = None
        self.process: Optional[asyncio.Future] = None

    def log(self, event: LogEvent) -> None:
        self.events.append(event)

    def store_tree(self, outline: TreeOutline) -> None:
        self.outline = outline

    def store_process(self, process: asyncio.Future) -> None:
        self.process = process

    @property
    def wire(self) -> List[List[Any]]:
        return [event.to_wire() for event in self.events]


class TaskSpy:
    """
    Scheduler task recording every call as (name, argument) pairs.

    move() deletes the moved paths from the inspector's files and makes
    later find() calls return nothing, like files leaving a watch dir.
    """

    def __init__(
        self,
        find: Callable[[], List[str]],
        inspector: Optional[MemoryInspector] = None,
        pwd: str = "",
        fail_on: Optional[str] = None,
    ):
        self._find = find
        self.inspector = inspector
        self.pwd = pwd
        self.fail_on = fail_on
        self.log: List[Tuple[str, Any]] = []

    async def find(self) -> List[str]:
        self.log.append(("find", None))
        self._maybe_fail("find")
        return list(self._find())

    async def move(self, paths: List[str]) -> str:
        self.log.append(("move", list(paths)))
        self._maybe_fail("move")

        if self.inspector is not None:
            for path in paths:
                for key in list(self.inspector.files):
                    if key.startswith(path):
                        del self.inspector.files[key]

        self._find = lambda: []
        return self.pwd

    async def run(self, pwd: str) -> None:
        self.log.append(("run", pwd))
        self._maybe_fail("run")

    def calls(self, name: str) -> List[Tuple[str, Any]]:
        return [entry for entry in self.log if entry[0] == name]

    def _maybe_fail(self, name: str) -> None:
        if self.fail_on == name:
            raise RuntimeError(f"{name} failed")
