"""
Observability for process tree runs.

Provides the JSON-lines event log (writer and replay) and plain-text
renderers for progress and failure trees.
"""

from .error_display import render_error_lines, render_progress_lines
from .event_log import EventLogReplay, JsonLinesLogger, read_event_log

__all__ = [
    "EventLogReplay",
    "JsonLinesLogger",
    "read_event_log",
    "render_error_lines",
    "render_progress_lines",
]
