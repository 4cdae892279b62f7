"""
Watch folder error hierarchy.

Errors raised while discovering, stabilizing, moving or running inbound files.
They are flat: one exception per failed operation, never a tree.
"""

from typing import Dict


class WatchFolderError(Exception):
    """Base exception for watch folder failures."""

    pass


class InspectorError(WatchFolderError):
    """A path could not be sized or checksummed (vanished, unreadable)."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot inspect {path}: {reason}")


class TaskConfigError(WatchFolderError):
    """Task configuration is missing, malformed or inconsistent."""

    pass


class SchedulerPassError(WatchFolderError):
    """
    One or more tasks failed during a scheduler pass.

    Other tasks in the same pass still ran; ``failures`` maps each failed
    task name to the exception it raised.
    """

    def __init__(self, failures: Dict[str, BaseException]):
        self.failures = dict(failures)
        names = ", ".join(sorted(self.failures))
        super().__init__(f"{len(self.failures)} task(s) failed during pass: {names}")
