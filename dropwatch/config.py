"""
Top-level configuration.

A configuration file is a JSON object:

{
    "poll_ticks": 5,
    "stability": {"dwell_ticks": 30, "confirmation_rounds": 1, "tick_seconds": 1.0},
    "tasks": [
        {
            "name": "invoices",
            "watch_dir": "/srv/inbound/invoices",
            "run_dir": "/srv/work/invoices",
            "command": ["process-invoice", "{path}"]
        }
    ]
}
"""

import json
from pathlib import Path
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .watchfolders.errors import TaskConfigError
from .watchfolders.models import StabilitySettings, TaskConfig


class DropwatchSettings(BaseModel):
    """Complete watcher configuration."""

    model_config = ConfigDict(extra="forbid")

    poll_ticks: int = Field(default=5, ge=1, description="Ticks between scheduler passes")
    stability: StabilitySettings = Field(default_factory=StabilitySettings)
    tasks: List[TaskConfig] = Field(default_factory=list)

    def tasks_by_name(self) -> Dict[str, TaskConfig]:
        return {task.name: task for task in self.tasks}


def load_settings(path: Path) -> DropwatchSettings:
    """
    Load and validate settings from a JSON file.

    Raises:
        TaskConfigError: If the file is missing, not JSON, fails validation,
            or names the same task twice
    """
    path = Path(path)
    if not path.is_file():
        raise TaskConfigError(f"Configuration file not found: {path}")

    try:
        with open(path, "r") as f:
            data = json.load(f)
        settings = DropwatchSettings.model_validate(data)
    except json.JSONDecodeError as e:
        raise TaskConfigError(f"Invalid JSON in {path}: {e}") from e
    except ValidationError as e:
        raise TaskConfigError(f"Invalid configuration in {path}: {e}") from e

    seen = set()
    for task in settings.tasks:
        if task.name in seen:
            raise TaskConfigError(f"Duplicate task name in {path}: {task.name}")
        seen.add(task.name)

    return settings
