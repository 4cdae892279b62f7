"""
Execution-specific errors.

Step failures are collected per node rather than stopping the tree.
A failed run (or a failed build) surfaces as one ProcessTreeError whose
``error`` attribute is the pruned ErrorNode tree.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ErrorNode


class ExecutionError(Exception):
    """Base exception for process tree failures."""

    pass


class StepFailure(ExecutionError):
    """
    Explicit failure raised by a setup, run or teardown step.

    The message is recorded verbatim on the failing node's ErrorNode.
    Any other exception raised by a step is recorded by its str().
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ProcessTreeError(ExecutionError):
    """
    A process tree failed to build or to run.

    Attributes:
        error: Root ErrorNode, containing only the failing branches
        phase: "build" or "run"
    """

    def __init__(self, error: "ErrorNode", phase: str = "run"):
        self.error = error
        self.phase = phase
        super().__init__(
            f"Process tree {phase} failed: {error.failure_count()} failing node(s)"
        )
