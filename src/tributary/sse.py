"""Server-Sent Events adapter for reconciled stream events."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from dataclasses import asdict

from tributary.events import ErrorEvent, FinalResponse, StreamEvent


def event_data(event: StreamEvent) -> dict:
    if isinstance(event, FinalResponse):
        return {"usage": event.usage.model_dump()}
    if isinstance(event, ErrorEvent):
        return {"kind": event.kind.value, "message": event.message}
    return asdict(event)


async def sse_generator(
    event_stream: AsyncIterator[StreamEvent],
) -> AsyncIterator[str]:
    """Convert a StreamEvent async iterator into SSE-formatted strings."""
    async for event in event_stream:
        event_type = type(event).__name__
        data = json.dumps(event_data(event))
        yield f"event: {event_type}\ndata: {data}\n\n"
    yield "event: done\ndata: {}\n\n"
