"""Events yielded by a reconciled completion stream."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from tributary.errors import ErrorKind
from tributary.usage import Usage


@dataclass
class StreamEvent:
    """Base for all streaming events."""


@dataclass
class TextDelta(StreamEvent):
    """Answer text, either streamed through or merged at end of stream."""

    text: str = ""


@dataclass
class ToolCallReady(StreamEvent):
    """A tool call whose arguments have been fully received and parsed.

    ``arguments`` is the decoded JSON value, usually a dict.
    """

    id: str = ""
    name: str = ""
    arguments: Any = None


@dataclass
class FinalResponse(StreamEvent):
    """Final event on a clean stream; always the last event yielded."""

    usage: Usage = field(default_factory=Usage)


@dataclass
class ErrorEvent(StreamEvent):
    """Terminal failure; replaces :class:`FinalResponse`."""

    kind: ErrorKind = ErrorKind.TRANSPORT
    message: str = ""
