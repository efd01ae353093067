"""Tool-call reassembly for streamed completions.

Each frame may carry :class:`ToolCallFragment` objects.  The
:class:`ToolCallAccumulator` reassembles tool calls whose arguments
arrive in fragments across multiple frames, keyed by the provider's
tool-call ``index`` (the *slot*).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from tributary.events import ToolCallReady

logger = logging.getLogger(__name__)


@dataclass
class ToolCallFragment:
    """A fragment of a tool call from a streaming frame."""

    slot: int
    id: str | None = None
    name: str | None = None
    arguments_piece: str = ""


@dataclass
class AccumulatedToolCall:
    """A tool call that has started but not yet completed."""

    id: str = ""
    name: str = ""
    arguments_buffer: str = ""


def _parse_arguments(tc_id: str, name: str, arguments: str) -> ToolCallReady | None:
    try:
        parsed = json.loads(arguments)
    except (ValueError, RecursionError) as e:
        logger.warning(f"Dropping tool call {name} ({tc_id}): invalid JSON arguments: {e}")
        return None
    return ToolCallReady(id=tc_id, name=name, arguments=parsed)


class ToolCallAccumulator:
    """Assembles complete tool calls from streaming fragments.

    The protocol has no "tool call finished" marker.  A fragment that
    carries both a name and arguments is a whole call and is returned
    straight away; otherwise a named fragment opens a slot, unnamed
    fragments extend it, and every open slot is completed by
    :meth:`drain` once the stream ends.
    """

    def __init__(self) -> None:
        self._pending: dict[int, AccumulatedToolCall] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def feed(self, fragment: ToolCallFragment) -> ToolCallReady | None:
        has_name = bool(fragment.name)
        has_arguments = bool(fragment.arguments_piece)

        if has_name and not has_arguments:
            # Last start wins; re-insert so drain order follows it.
            self._pending.pop(fragment.slot, None)
            self._pending[fragment.slot] = AccumulatedToolCall(
                id=fragment.id or "", name=fragment.name,
            )
            return None

        if has_name and has_arguments:
            return _parse_arguments(
                fragment.id or "", fragment.name, fragment.arguments_piece,
            )

        if not has_arguments:
            return None

        tc = self._pending.get(fragment.slot)
        if tc is None:
            logger.debug(
                f"Partial tool call received for slot {fragment.slot} "
                "but the tool call was never started"
            )
            return None
        if fragment.id and not tc.id:
            tc.id = fragment.id
        tc.arguments_buffer += fragment.arguments_piece
        return None

    def drain(self) -> list[ToolCallReady]:
        """Complete every open slot, in the order the slots were started."""
        ready = []
        for tc in self._pending.values():
            call = _parse_arguments(tc.id, tc.name, tc.arguments_buffer)
            if call is not None:
                ready.append(call)
        self._pending.clear()
        return ready
