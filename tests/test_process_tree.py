"""
Tests for the hierarchical process tree executor.

These tests verify:
1. begin/done logging and step ordering within a branch
2. Addresses on the wire (root rendered as "")
3. Build-phase failures produce a pruned ErrorNode and run nothing
4. Run-phase failures are aggregated, not fail-fast
"""

import asyncio

import pytest

from dropwatch.execution import (
    ErrorNode,
    ProcessTree,
    ProcessTreeError,
    StepFailure,
    build_tree,
    execute,
)
from dropwatch.testing import SpyLogger


def kinds(spy: SpyLogger):
    return [event.kind for event in spy.events]


# =============================================================================
# Lone nodes
# =============================================================================

class TestLoneNode:
    """A tree with a single node."""

    async def test_logs_begin_and_done_at_root(self):
        spy = SpyLogger()

        await execute(spy, lambda root: None)

        assert spy.wire == [["", "begin"], ["", "done"]]

    async def test_has_no_description(self):
        spy = SpyLogger()

        await execute(spy, lambda root: None)

        assert spy.outline.description == ""
        assert spy.outline.children == []

    async def test_remembers_description(self):
        spy = SpyLogger()

        def build(root):
            root.description = "the lone root"

        await execute(spy, build)

        assert spy.outline.description == "the lone root"

    async def test_slow_run_step_delays_done(self):
        spy = SpyLogger()
        release = asyncio.Event()

        def build(root):
            async def run():
                await release.wait()
            root.run = run

        runner = asyncio.ensure_future(execute(spy, build))
        await asyncio.sleep(0.01)

        assert kinds(spy) == ["begin"]
        assert spy.process is not None and not spy.process.done()

        release.set()
        await runner

        assert kinds(spy) == ["begin", "done"]

    async def test_sync_steps_are_allowed(self):
        spy = SpyLogger()
        calls = []

        def build(root):
            root.setup = lambda: calls.append("setup")
            root.run = lambda: calls.append("run")
            root.teardown = lambda: calls.append("teardown")

        await execute(spy, build)

        assert calls == ["setup", "run", "teardown"]


# =============================================================================
# Ordering
# =============================================================================

class TestOneChildWithDelays:
    """A root with setup/run/teardown around a single child."""

    @pytest.fixture
    async def spy(self):
        spy = SpyLogger()

        def build(root):
            root.add(lambda child: None)

            async def setup():
                await asyncio.sleep(0.01)
                root.log("info", "run before")

            async def run():
                await asyncio.sleep(0.01)
                root.log("info", "run")

            async def teardown():
                await asyncio.sleep(0.01)
                root.log("info", "run after")

            root.setup = setup
            root.run = run
            root.teardown = teardown

        await execute(spy, build)
        return spy

    async def test_has_seven_events(self, spy):
        assert len(spy.events) == 7

    async def test_events_are_in_branch_order(self, spy):
        assert spy.wire == [
            ["", "begin"],
            ["", "info", "run before"],
            ["", "info", "run"],
            [[0], "begin"],
            [[0], "done"],
            ["", "info", "run after"],
            ["", "done"],
        ]


class TestBinaryTree:
    """Two children, each with two leaf children."""

    @pytest.fixture
    async def spy(self):
        spy = SpyLogger()

        def add_two_leaves(node):
            node.add(lambda leaf: None)
            node.add(lambda leaf: None)

        def add_two_parents(root):
            root.add(add_two_leaves)
            root.add(add_two_leaves)

        await execute(spy, add_two_parents)
        return spy

    async def test_outline_shape(self, spy):
        assert len(spy.outline.children) == 2
        assert len(spy.outline.children[0].children) == 2
        assert len(spy.outline.children[1].children) == 2

    async def test_has_fourteen_events(self, spy):
        assert len(spy.events) == 14

    async def test_starts_with_root_then_first_child(self, spy):
        assert spy.wire[0] == ["", "begin"]
        assert spy.wire[1] == [[0], "begin"]

    async def test_contains_every_address(self, spy):
        begun = {event.address for event in spy.events if event.kind == "begin"}
        done = {event.address for event in spy.events if event.kind == "done"}
        expected = {(), (0,), (1,), (0, 0), (0, 1), (1, 0), (1, 1)}

        assert begun == expected
        assert done == expected

    async def test_root_done_is_last(self, spy):
        assert spy.wire[-1] == ["", "done"]


class TestDescriptions:

    def test_two_node_tree_outline(self):
        def build(root):
            root.description = "the root"

            def leaf(node):
                node.description = "the leaf"

            root.add(leaf)

        tree = ProcessTree.build(build)
        outline = tree.outline()

        assert outline.description == "the root"
        assert [child.description for child in outline.children] == ["the leaf"]
        assert tree.root.children[0].address == (0,)

    async def test_tree_runs_only_once(self):
        tree = ProcessTree.build(lambda root: None)
        await tree.run(SpyLogger())

        with pytest.raises(RuntimeError):
            await tree.run(SpyLogger())


# =============================================================================
# Build-phase failures
# =============================================================================

def build_with_two_failing_nodes(root):
    def add_leaf(parent, leaf_id):
        def leaf(node):
            node.description = f"node {leaf_id}"
        parent.add(leaf)

    root.description = "the root"

    def middle_one(node):
        node.description = "node 1"
        add_leaf(node, "1a")
        add_leaf(node, "1b")
        add_leaf(node, "1c")

    def middle_two(node):
        node.description = "node 2"
        add_leaf(node, "2a")

        def broken_leaf(leaf):
            leaf.description = "node 2b"
            raise StepFailure("bad problem with node 2b")

        node.add(broken_leaf)
        add_leaf(node, "2c")

    def middle_three(node):
        node.description = "node 3"
        add_leaf(node, "3a")
        add_leaf(node, "3b")
        add_leaf(node, "3c")
        raise StepFailure("bad problem with node 3")

    root.add(middle_one)
    root.add(middle_two)
    root.add(middle_three)


class TestBuildFailures:
    """Build functions that raise."""

    async def test_execute_raises_and_runs_nothing(self):
        spy = SpyLogger()

        with pytest.raises(ProcessTreeError) as exc_info:
            await execute(spy, build_with_two_failing_nodes)

        assert exc_info.value.phase == "build"
        assert spy.events == []
        assert spy.outline is None
        assert spy.process is None

    def test_build_tree_returns_error_node(self):
        result = build_tree(build_with_two_failing_nodes)

        assert isinstance(result, ErrorNode)

    def test_error_tree_shape(self):
        error = build_tree(build_with_two_failing_nodes)

        assert error.description == "the root"
        assert error.messages == []
        assert [child.description for child in error.children] == ["node 2", "node 3"]

        node_two, node_three = error.children
        assert node_two.messages == []
        assert len(node_two.children) == 1
        assert node_two.children[0].description == "node 2b"
        assert node_two.children[0].messages == ["bad problem with node 2b"]
        assert node_two.children[0].children == []

        assert node_three.messages == ["bad problem with node 3"]
        assert node_three.children == []

    def test_plain_exceptions_are_recorded_by_message(self):
        def build(root):
            root.description = "root"
            raise ValueError("not a step failure")

        error = build_tree(build)

        assert error.messages == ["not a step failure"]


# =============================================================================
# Run-phase failures
# =============================================================================

class TestRunFailures:
    """Three branches: A fails directly, B succeeds, C's grandchild fails."""

    @pytest.fixture
    def started(self):
        return []

    @pytest.fixture
    def build(self, started):
        def build(root):
            root.description = "root"

            def branch_a(node):
                node.description = "first child"

                def run():
                    raise StepFailure("uh oh uh oh")

                node.run = run
                node.add(lambda leaf: setattr(leaf, "description", "never runs"))

            def branch_b(node):
                node.description = "second child"
                for index in range(3):
                    def leaf(child, index=index):
                        child.description = f"leaf {index}"
                        child.run = lambda: started.append(index)
                    node.add(leaf)

            def branch_c(node):
                node.description = "third child"

                def grandchild(leaf):
                    leaf.description = "only grandchild"

                    async def run():
                        raise StepFailure("a grandchild problem")

                    leaf.run = run

                node.add(grandchild)

            root.add(branch_a)
            root.add(branch_b)
            root.add(branch_c)

        return build

    async def test_error_tree_is_pruned(self, build):
        with pytest.raises(ProcessTreeError) as exc_info:
            await execute(SpyLogger(), build)

        error = exc_info.value.error
        assert exc_info.value.phase == "run"
        assert error.description == "root"
        assert error.messages == []
        assert [child.description for child in error.children] == [
            "first child",
            "third child",
        ]

    async def test_failing_branches_carry_messages(self, build):
        with pytest.raises(ProcessTreeError) as exc_info:
            await execute(SpyLogger(), build)

        first, third = exc_info.value.error.children
        assert first.messages == ["uh oh uh oh"]
        assert first.children == []

        assert third.messages == []
        assert len(third.children) == 1
        assert third.children[0].description == "only grandchild"
        assert third.children[0].messages == ["a grandchild problem"]

    async def test_siblings_still_run(self, build, started):
        with pytest.raises(ProcessTreeError):
            await execute(SpyLogger(), build)

        assert sorted(started) == [0, 1, 2]

    async def test_failed_main_skips_children_and_done(self, build):
        spy = SpyLogger()

        with pytest.raises(ProcessTreeError):
            await execute(spy, build)

        events_at = lambda address: [e.kind for e in spy.events if e.address == address]
        assert events_at((0,)) == ["begin", "step_failed"]
        assert events_at((0, 0)) == []
        assert events_at((2,)) == ["begin", "done"]
        assert events_at(()) == ["begin", "done"]

    async def test_step_failures_are_logged_at_their_address(self, build):
        spy = SpyLogger()

        with pytest.raises(ProcessTreeError):
            await execute(spy, build)

        failed = [event.to_wire() for event in spy.events if event.kind == "step_failed"]
        assert sorted(failed, key=str) == sorted([
            [[0], "step_failed", "uh oh uh oh"],
            [[2, 0], "step_failed", "a grandchild problem"],
        ], key=str)

    async def test_stored_process_carries_the_error(self, build):
        spy = SpyLogger()

        with pytest.raises(ProcessTreeError):
            await execute(spy, build)

        assert spy.process.done()
        assert isinstance(spy.process.exception(), ProcessTreeError)


class TestTeardown:

    async def test_teardown_runs_after_child_failure(self):
        calls = []

        def build(root):
            root.description = "root"
            root.teardown = lambda: calls.append("teardown")

            def child(node):
                node.description = "child"

                def run():
                    raise StepFailure("child failed")

                node.run = run

            root.add(child)

        with pytest.raises(ProcessTreeError):
            await execute(SpyLogger(), build)

        assert calls == ["teardown"]

    async def test_teardown_skipped_after_setup_failure(self):
        calls = []

        def build(root):
            def setup():
                raise StepFailure("no setup")

            root.setup = setup
            root.run = lambda: calls.append("run")
            root.teardown = lambda: calls.append("teardown")

        with pytest.raises(ProcessTreeError) as exc_info:
            await execute(SpyLogger(), build)

        assert calls == []
        assert exc_info.value.error.messages == ["no setup"]

    async def test_teardown_failure_still_logs_done(self):
        spy = SpyLogger()

        def build(root):
            def teardown():
                raise StepFailure("cleanup failed")

            root.teardown = teardown

        with pytest.raises(ProcessTreeError) as exc_info:
            await execute(spy, build)

        assert kinds(spy) == ["begin", "step_failed", "done"]
        assert exc_info.value.error.messages == ["cleanup failed"]
