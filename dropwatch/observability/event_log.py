"""
JSON-lines event log.

Writer side: JsonLinesLogger implements the process tree logger contract
(log / store_tree / store_process) and appends one JSON array per line.

Reader side: read_event_log() replays a log file into an EventLogReplay,
tracking which nodes began and finished and how the run ended.

Stream format:
    ["", "tree", {"description": ..., "children": [...]}]   outline, first
    [address, "begin"]                                       node started
    [address, "info", "free", "form", "messages"]            step message
    [address, "step_failed", message]                        a step failed
    [address, "done"]                                        node finished
    ["", "finished"]  or  ["", "failed", {ErrorNode}]         terminating event

A stream without a terminating event ended abnormally.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from ..execution.errors import ProcessTreeError
from ..execution.models import Address, ErrorNode, EventKind, LogEvent, TreeOutline

logger = logging.getLogger(__name__)


class JsonLinesLogger:
    """
    Append-only JSON-lines logger for one process tree run.

    Every event is also kept in memory on ``events``.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.events: List[LogEvent] = []
        self.process: Optional[asyncio.Future] = None

    def log(self, event: LogEvent) -> None:
        self.events.append(event)
        self._append(event.to_wire())

    def store_tree(self, outline: TreeOutline) -> None:
        self._append(["", EventKind.TREE.value, outline.model_dump()])

    def store_process(self, process: asyncio.Future) -> None:
        self.process = process
        process.add_done_callback(self._record_outcome)

    def _record_outcome(self, process: asyncio.Future) -> None:
        if process.cancelled():
            return

        error = process.exception()
        if error is None:
            self._append(["", EventKind.FINISHED.value])
        elif isinstance(error, ProcessTreeError):
            self._append(["", EventKind.FAILED.value, error.error.model_dump()])
        else:
            unexpected = ErrorNode(messages=[str(error) or type(error).__name__])
            self._append(["", EventKind.FAILED.value, unexpected.model_dump()])

    def _append(self, record: List[Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a") as f:
            f.write(json.dumps(record) + "\n")


class EventLogReplay:
    """
    State rebuilt from an event stream.

    Attributes:
        outline: Tree outline, if the stream carried one
        events: Node events in stream order (markers and messages)
        outcome: "finished", "failed", or None if the stream ended early
        error: Failure tree when outcome is "failed"
        failures: Step failure messages per node address
    """

    def __init__(self):
        self.outline: Optional[TreeOutline] = None
        self.events: List[LogEvent] = []
        self.outcome: Optional[str] = None
        self.error: Optional[ErrorNode] = None
        self.begun: Set[Address] = set()
        self.done: Set[Address] = set()
        self.messages: Dict[Address, List[List[Any]]] = {}
        self.failures: Dict[Address, List[str]] = {}

    @property
    def completed(self) -> bool:
        return self.outcome is not None

    @property
    def succeeded(self) -> bool:
        return self.outcome == EventKind.FINISHED.value

    def apply(self, event: LogEvent) -> None:
        if event.kind == EventKind.TREE.value:
            self.outline = TreeOutline.model_validate(event.messages[0])
        elif event.kind == EventKind.FINISHED.value:
            self.outcome = event.kind
        elif event.kind == EventKind.FAILED.value:
            self.outcome = event.kind
            if event.messages:
                self.error = ErrorNode.model_validate(event.messages[0])
        elif event.kind == EventKind.BEGIN.value:
            self.events.append(event)
            self.begun.add(event.address)
        elif event.kind == EventKind.DONE.value:
            self.events.append(event)
            self.done.add(event.address)
        elif event.kind == EventKind.STEP_FAILED.value:
            self.events.append(event)
            self.failures.setdefault(event.address, []).extend(
                str(message) for message in event.messages
            )
        else:
            self.events.append(event)
            self.messages.setdefault(event.address, []).append(
                [event.kind, *event.messages]
            )


def read_event_log(path: Path) -> EventLogReplay:
    """
    Replay a JSON-lines event log.

    Blank lines are skipped; a malformed trailing line (a write cut short)
    is ignored with a warning.

    Raises:
        OSError: If the file cannot be read
        ValueError: If a line other than the last one is malformed
    """
    replay = EventLogReplay()

    with open(path, "r") as f:
        lines = [line for line in f.read().splitlines() if line.strip()]

    for number, line in enumerate(lines, 1):
        try:
            event = LogEvent.from_wire(json.loads(line))
        except ValueError as e:
            if number == len(lines):
                logger.warning(f"[EventLog] Ignoring truncated last line in {path}: {e}")
                break
            raise ValueError(f"{path}:{number}: {e}") from e
        replay.apply(event)

    return replay
