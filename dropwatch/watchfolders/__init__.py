"""
Watch folders — stability-gated discovery of inbound files.

Public API:
    FileTreeInspector — sizes and SHA256 checksums from the real filesystem
    StabilityDetector — size polling, then checksum confirmation
    Scheduler — find → stabilize → move → run, one pass per task
    DirectoryTask — watch dir / run dir / runner task
    CommandRunner — runs a command per moved entry as a process tree
"""

from .errors import (
    InspectorError,
    SchedulerPassError,
    TaskConfigError,
    WatchFolderError,
)
from .inspector import FileTreeInspector
from .models import StabilitySettings, TaskConfig
from .scheduler import Scheduler, Task
from .stability import StabilityDetector
from .tasks import CommandRunner, DirectoryTask, task_from_config
from .ticker import RealTicker

__all__ = [
    # Errors
    "WatchFolderError",
    "InspectorError",
    "SchedulerPassError",
    "TaskConfigError",
    # Models
    "StabilitySettings",
    "TaskConfig",
    # Core
    "FileTreeInspector",
    "StabilityDetector",
    "Scheduler",
    "Task",
    "DirectoryTask",
    "CommandRunner",
    "RealTicker",
    "task_from_config",
]
