"""
Process tree data models.

LogEvent is the unit of the structured event log.
ErrorNode is the pruned failure tree returned when a build or run fails.
TreeOutline is a read-only view of a built tree's shape.

All models use Pydantic and forbid unknown fields.
"""

from enum import Enum
from typing import Any, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class EventKind(str, Enum):
    """
    Reserved event kinds.

    BEGIN and DONE bracket a node's own work. STEP_FAILED is written at a
    node's address, with the failure message, whenever one of its steps
    fails. FINISHED and FAILED are terminating events written once at the
    root address after the whole tree settles. TREE carries the outline
    before the run starts.

    Any other kind (e.g. "info", "warning") is a free-form message level
    chosen by a step.
    """

    BEGIN = "begin"
    DONE = "done"
    STEP_FAILED = "step_failed"
    TREE = "tree"
    FINISHED = "finished"
    FAILED = "failed"


Address = Tuple[int, ...]


class LogEvent(BaseModel):
    """
    A single structured log event.

    Wire form is a JSON array: ``[address, kind, *messages]`` where the root
    address is rendered as the empty string rather than an empty list.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    address: Address = ()
    kind: str
    messages: Tuple[Any, ...] = ()

    @property
    def is_marker(self) -> bool:
        return self.kind in (EventKind.BEGIN.value, EventKind.DONE.value)

    def to_wire(self) -> List[Any]:
        address: Union[str, List[int]] = list(self.address) if self.address else ""
        return [address, self.kind, *self.messages]

    @classmethod
    def from_wire(cls, data: List[Any]) -> "LogEvent":
        if not isinstance(data, list) or len(data) < 2:
            raise ValueError(f"Malformed log event: {data!r}")

        address = data[0]
        if address == "":
            address = ()
        elif not isinstance(address, list):
            raise ValueError(f"Malformed log event address: {address!r}")

        return cls(address=tuple(address), kind=data[1], messages=tuple(data[2:]))


class ErrorNode(BaseModel):
    """
    Failure tree node.

    Mirrors a ProcessNode but only exists for nodes that failed themselves
    or have a failing descendant.

    messages: failures raised by this node's own steps (or build function)
    children: ErrorNodes for failing child branches, in original order
    """

    model_config = ConfigDict(extra="forbid")

    description: str = ""
    messages: List[str] = Field(default_factory=list)
    children: List["ErrorNode"] = Field(default_factory=list)

    def failure_count(self) -> int:
        """Number of nodes in this tree that failed directly."""
        own = 1 if self.messages else 0
        return own + sum(child.failure_count() for child in self.children)


class TreeOutline(BaseModel):
    """Shape of a built process tree (descriptions only, no steps)."""

    model_config = ConfigDict(extra="forbid")

    description: str = ""
    children: List["TreeOutline"] = Field(default_factory=list)

    def find(self, address: Address) -> Optional["TreeOutline"]:
        node = self
        for index in address:
            if index >= len(node.children):
                return None
            node = node.children[index]
        return node


ErrorNode.model_rebuild()
TreeOutline.model_rebuild()
