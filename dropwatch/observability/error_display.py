"""
Plain-text rendering for process trees.

render_progress_lines() turns a replayed event log into a bulleted list,
one line per node, marked by state (failures come from the step_failed
events at each node's address):

    [x] finished   [>] running   [ ] not started   [!] failed

render_error_lines() walks an ErrorNode tree so every independent failure
is reported, not just the first.
"""

from typing import List

from ..execution.models import Address, ErrorNode, TreeOutline
from .event_log import EventLogReplay

INDENT = "  "


def render_error_lines(error: ErrorNode, depth: int = 0) -> List[str]:
    """
    One line per failing node, followed by one indented line per message.

    Example:
        the root
          node 2
            node 2b
              ! bad problem with node 2b
    """
    lines = [f"{INDENT * depth}{error.description or '(no description)'}"]

    for message in error.messages:
        lines.append(f"{INDENT * (depth + 1)}! {message}")

    for child in error.children:
        lines.extend(render_error_lines(child, depth + 1))

    return lines


def render_progress_lines(replay: EventLogReplay) -> List[str]:
    """Bulleted progress list for a replayed log."""
    if replay.outline is None:
        return [f"- {list(event.address)} {event.kind}" for event in replay.events]

    lines: List[str] = []

    def walk(node: TreeOutline, address: Address, depth: int) -> None:
        if address in replay.failures:
            mark = "!"
        elif address in replay.done:
            mark = "x"
        elif address in replay.begun:
            mark = ">"
        else:
            mark = " "

        lines.append(f"{INDENT * depth}- [{mark}] {node.description or '(no description)'}")

        for entry in replay.messages.get(address, []):
            level, *messages = entry
            text = " ".join(str(message) for message in messages)
            lines.append(f"{INDENT * (depth + 1)}{level}: {text}")

        for message in replay.failures.get(address, []):
            lines.append(f"{INDENT * (depth + 1)}! {message}")

        for index, child in enumerate(node.children):
            walk(child, address + (index,), depth + 1)

    walk(replay.outline, (), 0)
    return lines
