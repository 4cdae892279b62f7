"""
Watch folder data models.

All models use Pydantic with strict validation and no silent coercion.
"""

from pathlib import Path
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Snapshot types compared by the stability detector.
# Equality is plain mapping equality: same keys, same value per key.
FileSizeSnapshot = Dict[str, int]
FileChecksumSnapshot = Dict[str, str]


class StabilitySettings(BaseModel):
    """
    Stability detection timing, measured in ticks.

    Example:
        With defaults, an unchanging file is confirmed after one tick of
        size polling plus one 30-tick dwell between checksum rounds.
    """

    model_config = ConfigDict(extra="forbid")

    dwell_ticks: int = Field(
        default=30, ge=0, description="Ticks to wait between checksum confirmation rounds"
    )
    confirmation_rounds: int = Field(
        default=1,
        ge=0,
        description="Extra checksum-equal rounds required after the first match",
    )
    tick_seconds: float = Field(
        default=1.0, gt=0, description="Wall-clock length of one tick for the real ticker"
    )


class TaskConfig(BaseModel):
    """
    Configuration for one watch directory / run directory pair.

    Files found in watch_dir are moved into a fresh subdirectory of run_dir,
    then ``command`` runs once per moved entry with ``{path}`` replaced by
    the entry's name.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, description="Unique task name")
    watch_dir: str = Field(..., description="Absolute path to the inbound directory")
    run_dir: str = Field(..., description="Absolute path under which working dirs are made")
    command: List[str] = Field(
        ..., min_length=1, description="argv template run for each moved entry"
    )
    log_filename: str = Field(
        default="dropwatch.log",
        description="Event log name inside each working dir's .dropwatch/ directory",
    )

    @field_validator("watch_dir", "run_dir")
    @classmethod
    def validate_absolute_path(cls, v: str) -> str:
        """Ensure path is absolute."""
        if not Path(v).is_absolute():
            raise ValueError(f"Task directory must be absolute: {v}")
        return v
