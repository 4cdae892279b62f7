"""
dropwatch — wait for inbound files to finish writing, then process them.

Public API:
    StabilityDetector — size/checksum polling until a file set stops changing
    Scheduler — find → stabilize → move → run, one pass per task
    execute — hierarchical process tree with aggregated failure trees
"""

from .execution import ErrorNode, ProcessTreeError, StepFailure, execute
from .watchfolders import DirectoryTask, Scheduler, StabilityDetector

__version__ = "0.1.0"

__all__ = [
    "DirectoryTask",
    "ErrorNode",
    "ProcessTreeError",
    "Scheduler",
    "StabilityDetector",
    "StepFailure",
    "execute",
]
