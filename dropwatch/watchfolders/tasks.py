"""
Directory-backed tasks.

DirectoryTask wires a watch directory, a run directory and a runner into
the find/move/run contract the scheduler consumes:

watch_dir/
├── incoming_a.csv        # found by find()
└── incoming_b/           # directories are moved whole
run_dir/
└── 3f9c2a71d04b/         # one fresh working dir per move()
    ├── incoming_a.csv
    ├── incoming_b/
    └── .dropwatch/
        └── dropwatch.log # event log written by CommandRunner

CommandRunner is the default runner: it processes a working directory as
a process tree with one child node per moved entry.
"""

import asyncio
import logging
import shutil
import uuid
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence

from ..execution.errors import StepFailure
from ..execution.process_tree import NodeBuilder, execute
from ..observability.event_log import JsonLinesLogger
from .models import TaskConfig

logger = logging.getLogger(__name__)

# Hidden entries are never moved in, so a moved entry cannot collide with this.
LOG_DIRNAME = ".dropwatch"

Runner = Callable[[str], Awaitable[None]]


def random_dirname() -> str:
    """Short random name for a working directory."""
    return uuid.uuid4().hex[:12]


class DirectoryTask:
    """
    Task backed by a watch directory and a run directory.

    Hidden entries (leading '.') in the watch directory are ignored.
    ``pwd`` holds the most recent working directory ("" before any move).
    """

    def __init__(
        self,
        watch_dir: str,
        run_dir: str,
        runner: Runner,
        name_factory: Callable[[], str] = random_dirname,
    ):
        self.watch_dir = Path(watch_dir)
        self.run_dir = Path(run_dir)
        self.runner = runner
        self.name_factory = name_factory
        self.pwd = ""

    async def find(self) -> List[str]:
        return await asyncio.to_thread(self._list_watch_dir)

    async def move(self, paths: List[str]) -> str:
        self.pwd = await asyncio.to_thread(self._move_into_new_dir, paths)
        return self.pwd

    async def run(self, pwd: str) -> None:
        await self.runner(pwd)

    def _list_watch_dir(self) -> List[str]:
        if not self.watch_dir.is_dir():
            return []

        return sorted(
            str(item)
            for item in self.watch_dir.iterdir()
            if not item.name.startswith(".")
        )

    def _move_into_new_dir(self, paths: List[str]) -> str:
        self.run_dir.mkdir(parents=True, exist_ok=True)

        while True:
            pwd = self.run_dir / self.name_factory()
            try:
                pwd.mkdir()
                break
            except FileExistsError:
                logger.debug(f"[DirectoryTask] Working dir name collision: {pwd.name}")

        for path in paths:
            shutil.move(str(path), str(pwd / Path(path).name))

        return str(pwd)


class CommandRunner:
    """
    Runner that executes an argv template once per entry of a working dir.

    ``{path}`` in any argument is replaced by the entry's name; commands run
    with the working dir as cwd. Each entry is one child of a process tree,
    so one failing entry does not stop the others. Progress and failures
    are written to ``log_filename`` inside the working dir's hidden
    ``.dropwatch/`` directory; hidden entries are not processed.

    Raises (from __call__):
        ProcessTreeError: If any entry's command failed
    """

    def __init__(
        self,
        command: Sequence[str],
        description: str = "",
        log_filename: str = "dropwatch.log",
    ):
        self.command = list(command)
        self.description = description
        self.log_filename = log_filename

    async def __call__(self, pwd: str) -> None:
        entries = await asyncio.to_thread(self._list_entries, Path(pwd))
        event_log = JsonLinesLogger(self.log_path(pwd))

        def build(root: NodeBuilder) -> None:
            root.description = self.description or f"process {pwd}"
            for entry in entries:
                root.add(self._entry_builder(entry, pwd))

        await execute(event_log, build)

    def log_path(self, pwd: str) -> Path:
        return Path(pwd) / LOG_DIRNAME / self.log_filename

    def _list_entries(self, pwd: Path) -> List[str]:
        return sorted(
            item.name for item in pwd.iterdir() if not item.name.startswith(".")
        )

    def _entry_builder(self, entry: str, pwd: str) -> Callable[[NodeBuilder], None]:
        argv = [part.replace("{path}", entry) for part in self.command]

        def build(node: NodeBuilder) -> None:
            node.description = entry

            async def run() -> None:
                process = await asyncio.create_subprocess_exec(
                    *argv,
                    cwd=pwd,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.STDOUT,
                )
                output, _ = await process.communicate()

                text = output.decode(errors="replace").strip()
                if text:
                    node.log("info", text)

                if process.returncode != 0:
                    raise StepFailure(
                        f"{argv[0]} exited with status {process.returncode}"
                    )

            node.run = run

        return build


def task_from_config(config: TaskConfig, runner: Optional[Runner] = None) -> DirectoryTask:
    """Build a DirectoryTask; the runner defaults to a CommandRunner for config.command."""
    if runner is None:
        runner = CommandRunner(
            config.command,
            description=config.name,
            log_filename=config.log_filename,
        )
    return DirectoryTask(config.watch_dir, config.run_dir, runner)
