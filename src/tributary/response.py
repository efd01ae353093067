"""Folding a stream of events into a complete response."""

from __future__ import annotations

from collections.abc import AsyncIterable
from dataclasses import dataclass, field

from tributary.events import (
    ErrorEvent,
    FinalResponse,
    StreamEvent,
    TextDelta,
    ToolCallReady,
)
from tributary.message import Message, MessageRole, ToolCallRequestMessage
from tributary.usage import Usage


@dataclass
class StreamedResponse:
    """Everything a consumer keeps from one streamed completion.

    ``complete`` is set once a :class:`FinalResponse` arrives; a stream
    that ended in an :class:`ErrorEvent` has ``error`` set instead and
    holds whatever text and tool calls arrived before the failure.
    """

    text: str = ""
    tool_calls: list[ToolCallReady] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    error: ErrorEvent | None = None
    complete: bool = False

    def add(self, event: StreamEvent) -> None:
        if isinstance(event, TextDelta):
            self.text += event.text
        elif isinstance(event, ToolCallReady):
            self.tool_calls.append(event)
        elif isinstance(event, FinalResponse):
            self.usage = event.usage
            self.complete = True
        elif isinstance(event, ErrorEvent):
            self.error = event

    @classmethod
    async def from_events(cls, events: AsyncIterable[StreamEvent]) -> StreamedResponse:
        response = cls()
        async for event in events:
            response.add(event)
        return response

    def to_messages(self) -> list[Message]:
        """Transcript messages for the assistant turn."""
        messages: list[Message] = []
        if self.text:
            messages.append(Message(role=MessageRole.ASSISTANT, content=self.text))
        if self.tool_calls:
            messages.append(ToolCallRequestMessage(
                role=MessageRole.ASSISTANT, tool_calls=self.tool_calls,
            ))
        return messages
