"""
Hierarchical process tree execution.

Public API:
    execute — build and run a process tree against a logger
    ProcessTree / build_tree — explicit build step, then run
    NodeBuilder — handle passed to build functions
    ErrorNode — pruned failure tree
    LogEvent — structured event, ``[address, kind, *messages]`` on the wire
"""

from .errors import ExecutionError, ProcessTreeError, StepFailure
from .models import ErrorNode, EventKind, LogEvent, TreeOutline
from .process_tree import NodeBuilder, ProcessNode, ProcessTree, build_tree, execute

__all__ = [
    # Errors
    "ExecutionError",
    "ProcessTreeError",
    "StepFailure",
    # Models
    "ErrorNode",
    "EventKind",
    "LogEvent",
    "TreeOutline",
    # Core
    "NodeBuilder",
    "ProcessNode",
    "ProcessTree",
    "build_tree",
    "execute",
]
