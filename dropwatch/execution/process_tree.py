"""
Hierarchical process tree executor.

A caller describes a tree of processing steps with a build function:

    def build(root):
        root.description = "ingest batch"
        root.run = load_manifest

        root.add(lambda node: ...)   # child 0
        root.add(lambda node: ...)   # child 1

    await execute(logger, build)

Build phase (synchronous):
- Every add() immediately calls the child's build function with a fresh
  NodeBuilder. An exception is caught at the node where it was raised.
- If any build function raised, nothing runs. ProcessTreeError is raised
  with an ErrorNode tree containing only the branches that raised.

Run phase (asyncio), per node:
1. log "begin"
2. setup    - on failure: record, stop this node (no children, no "done")
3. run      - same as setup
4. children - all started together, all awaited, no cancellation
5. teardown - on failure: record
6. log "done"

Every recorded step failure is also logged as "step_failed" at the node's
address, so a log reader knows exactly which node failed.

Failures never stop siblings or cousins. When the tree settles, any
recorded failure raises ProcessTreeError carrying the pruned ErrorNode.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Union

from .errors import ProcessTreeError, StepFailure
from .models import Address, ErrorNode, EventKind, LogEvent, TreeOutline

logger = logging.getLogger(__name__)

Step = Callable[[], Union[Awaitable[None], None]]
BuildFunction = Callable[["NodeBuilder"], Any]


async def _noop() -> None:
    return None


def failure_message(exc: BaseException) -> str:
    """Raw message recorded on an ErrorNode for a raised exception."""
    if isinstance(exc, StepFailure):
        return exc.message
    return str(exc) or type(exc).__name__


@dataclass(frozen=True)
class ProcessNode:
    """
    Immutable node of a built process tree.

    address is the sequence of child indices from the root; the root's
    address is the empty tuple.
    """

    address: Address
    description: str = ""
    children: Tuple["ProcessNode", ...] = ()
    setup: Step = _noop
    run: Step = _noop
    teardown: Step = _noop

    def outline(self) -> TreeOutline:
        return TreeOutline(
            description=self.description,
            children=[child.outline() for child in self.children],
        )


class _TreeContext:
    """Logger binding shared by every builder and node of one tree."""

    def __init__(self):
        self.logger = None

    def emit(self, address: Address, kind: str, messages: Tuple[Any, ...] = ()) -> None:
        if self.logger is None:
            raise RuntimeError("Process tree is not running; nothing to log to")
        self.logger.log(LogEvent(address=address, kind=kind, messages=messages))


class NodeBuilder:
    """
    Mutable handle used while building one node.

    Build functions set ``description``, ``setup``, ``run`` and ``teardown``
    and call ``add()`` for children. Steps may close over the builder and
    call ``log()`` while the tree is running.
    """

    def __init__(self, context: _TreeContext, address: Address):
        self.description = ""
        self.setup: Step = _noop
        self.run: Step = _noop
        self.teardown: Step = _noop
        self.address = address

        self._context = context
        self._children: List["NodeBuilder"] = []
        self._build_messages: List[str] = []

    def add(self, build: BuildFunction) -> "NodeBuilder":
        """Create the next child and immediately run its build function."""
        child = NodeBuilder(self._context, self.address + (len(self._children),))
        self._children.append(child)
        child._apply(build)
        return child

    def log(self, level: str, *messages: Any) -> None:
        """Log free-form messages against this node's address."""
        self._context.emit(self.address, level, messages)

    def _apply(self, build: BuildFunction) -> None:
        try:
            build(self)
        except Exception as exc:
            logger.debug(
                f"[ProcessTree] Build failed at {list(self.address)}: {exc!r}"
            )
            self._build_messages.append(failure_message(exc))

    def _build_errors(self) -> Optional[ErrorNode]:
        failing_children = [
            error
            for error in (child._build_errors() for child in self._children)
            if error is not None
        ]

        if not self._build_messages and not failing_children:
            return None

        # A node that raised reports only its own message and the children
        # that raised; children it added successfully are left out.
        return ErrorNode(
            description=self.description,
            messages=list(self._build_messages),
            children=failing_children,
        )

    def _freeze(self) -> ProcessNode:
        return ProcessNode(
            address=self.address,
            description=self.description,
            children=tuple(child._freeze() for child in self._children),
            setup=self.setup,
            run=self.run,
            teardown=self.teardown,
        )


def build_tree(build: BuildFunction) -> Union["ProcessTree", ErrorNode]:
    """
    Run the synchronous build phase.

    Returns:
        ProcessTree if every build function succeeded, otherwise the
        ErrorNode tree of the branches that raised
    """
    context = _TreeContext()
    root = NodeBuilder(context, ())
    root._apply(build)

    error = root._build_errors()
    if error is not None:
        return error

    return ProcessTree(root._freeze(), context)


class ProcessTree:
    """
    A built, immutable process tree. Runs exactly once.
    """

    def __init__(self, root: ProcessNode, context: _TreeContext):
        self.root = root
        self._context = context
        self._started = False

    @classmethod
    def build(cls, build: BuildFunction) -> "ProcessTree":
        """
        Build a tree, raising on failure.

        Raises:
            ProcessTreeError: phase="build", if any build function raised
        """
        result = build_tree(build)
        if isinstance(result, ErrorNode):
            raise ProcessTreeError(result, phase="build")
        return result

    def outline(self) -> TreeOutline:
        return self.root.outline()

    async def run(self, event_logger) -> None:
        """
        Run every node, aggregating failures.

        Raises:
            ProcessTreeError: phase="run", if any node failed
        """
        if self._started:
            raise RuntimeError("Process tree has already been run")
        self._started = True
        self._context.logger = event_logger

        error = await self._run_node(self.root)
        if error is not None:
            raise ProcessTreeError(error, phase="run")

    async def _run_node(self, node: ProcessNode) -> Optional[ErrorNode]:
        self._context.emit(node.address, EventKind.BEGIN.value)

        for step in (node.setup, node.run):
            message = await self._call_step(node, step)
            if message is not None:
                return ErrorNode(description=node.description, messages=[message])

        results = await asyncio.gather(
            *(self._run_node(child) for child in node.children)
        )
        failing_children = [error for error in results if error is not None]

        messages = []
        message = await self._call_step(node, node.teardown)
        if message is not None:
            messages.append(message)

        self._context.emit(node.address, EventKind.DONE.value)

        if not messages and not failing_children:
            return None

        return ErrorNode(
            description=node.description,
            messages=messages,
            children=failing_children,
        )

    async def _call_step(self, node: ProcessNode, step: Step) -> Optional[str]:
        try:
            result = step()
            if inspect.isawaitable(result):
                await result
        except StepFailure as exc:
            logger.warning(
                f"[ProcessTree] Step failed at {list(node.address)} "
                f"({node.description!r}): {exc.message}"
            )
            message = exc.message
        except Exception as exc:
            logger.exception(
                f"[ProcessTree] Unexpected error at {list(node.address)} "
                f"({node.description!r}): {exc}"
            )
            message = failure_message(exc)
        else:
            return None

        self._context.emit(node.address, EventKind.STEP_FAILED.value, (message,))
        return message


async def execute(event_logger, build: BuildFunction) -> None:
    """
    Build and run a process tree.

    The logger must provide ``log(event)``. If it also provides
    ``store_tree(outline)`` it receives the built tree's outline before
    anything runs, and ``store_process(task)`` receives the asyncio task
    wrapping the run phase.

    Raises:
        ProcessTreeError: if the build or the run failed
    """
    tree = ProcessTree.build(build)

    store_tree = getattr(event_logger, "store_tree", None)
    if store_tree is not None:
        store_tree(tree.outline())

    process = asyncio.ensure_future(tree.run(event_logger))

    store_process = getattr(event_logger, "store_process", None)
    if store_process is not None:
        store_process(process)

    await process
