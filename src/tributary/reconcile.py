"""Turns a raw completion byte stream into ordered semantic events.

The pipeline is::

    bytes -> FrameDecoder -> parse_frame -> ToolCallAccumulator
                                         -> ReasoningMerger
                                         -> UsageTracker

:class:`StreamReconciler` holds that state for one stream and does the
work synchronously; :func:`reconcile_stream` pulls chunks from the
transport and yields the events, ending in exactly one
:class:`FinalResponse` or :class:`ErrorEvent`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, AsyncIterator

import httpx

from tributary.config import StreamConfig
from tributary.errors import DecodeError, ErrorKind, TransportError
from tributary.events import ErrorEvent, FinalResponse, StreamEvent, TextDelta
from tributary.frames import FrameDecoder
from tributary.parser import parse_frame
from tributary.reasoning import ReasoningMerger
from tributary.streaming import ToolCallAccumulator
from tributary.usage import UsageTracker

logger = logging.getLogger(__name__)

# Failures raised while awaiting the next chunk that end the stream.
TRANSPORT_ERRORS = (
    httpx.HTTPError,
    httpx.StreamError,
    asyncio.TimeoutError,
    OSError,
    TransportError,
)


class StreamReconciler:
    """Per-stream state: decoder, tool-call slots, text buffers, usage.

    Args:
        config: Reasoning merge policy; defaults to :class:`StreamConfig`.
    """

    def __init__(self, config: StreamConfig | None = None):
        self.config = config or StreamConfig()
        self.decoder = FrameDecoder()
        self.accumulator = ToolCallAccumulator()
        self.merger = ReasoningMerger(self.config)
        self.usage = UsageTracker()

    def feed(self, chunk: bytes) -> list[StreamEvent]:
        """Events made available by one chunk.

        Raises:
            DecodeError: The chunk is not valid UTF-8.
        """
        events: list[StreamEvent] = []
        for payload in self.decoder.feed(chunk):
            events.extend(self._apply(payload))
        return events

    def finish(self) -> list[StreamEvent]:
        """Deferred text, leftover tool calls, then the final response."""
        events: list[StreamEvent] = []
        for payload in self.decoder.finish():
            events.extend(self._apply(payload))
        events.extend(TextDelta(text=text) for text in self.merger.flush())
        events.extend(self.accumulator.drain())
        events.append(FinalResponse(usage=self.usage.usage))
        return events

    def _apply(self, payload: str) -> list[StreamEvent]:
        frame = parse_frame(payload)
        if frame is None:
            return []

        events: list[StreamEvent] = []
        for fragment in frame.delta.tool_call_fragments:
            ready = self.accumulator.feed(fragment)
            if ready is not None:
                events.append(ready)
        events.extend(TextDelta(text=text) for text in self.merger.feed(frame.delta))
        self.usage.observe(frame.usage)
        return events


async def reconcile_stream(
    chunks: AsyncIterable[bytes],
    config: StreamConfig | None = None,
) -> AsyncIterator[StreamEvent]:
    """Yield the events of one streamed completion.

    Text deltas and single-frame tool calls are yielded as soon as their
    frame arrives.  When *chunks* is exhausted, the deferred reasoning
    and answer text follow, then any tool calls still open, then a
    :class:`FinalResponse` with the last usage seen.

    A failed read or undecodable bytes end the stream with an
    :class:`ErrorEvent` instead.  Closing the generator early closes
    *chunks* as well.
    """
    reconciler = StreamReconciler(config)
    iterator = aiter(chunks)
    try:
        while True:
            try:
                chunk = await anext(iterator)
            except StopAsyncIteration:
                break
            except TRANSPORT_ERRORS as e:
                logger.warning(f"Reading the response stream failed: {e!r}")
                yield ErrorEvent(kind=ErrorKind.TRANSPORT, message=str(e))
                return

            try:
                events = reconciler.feed(chunk)
            except DecodeError as e:
                logger.warning(f"Response stream could not be decoded: {e}")
                yield ErrorEvent(kind=ErrorKind.DECODE, message=str(e))
                return
            for event in events:
                yield event

        try:
            events = reconciler.finish()
        except DecodeError as e:
            logger.warning(f"Response stream could not be decoded: {e}")
            yield ErrorEvent(kind=ErrorKind.DECODE, message=str(e))
            return
        for event in events:
            yield event
    finally:
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()
