"""Parsing of chat-completion stream frames.

Each ``data:`` payload of an OpenAI-compatible stream is a JSON object::

    {"choices": [{"delta": {"content": ..., "reasoning_content": ...,
                            "tool_calls": [...]}}],
     "usage": {"prompt_tokens": ..., "total_tokens": ...}}

The wire models below mirror that shape.  :func:`parse_frame` turns a
payload into a :class:`ParsedFrame`, or ``None`` when the payload does
not validate.  A bad frame never ends the stream.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pydantic import BaseModel, Field, ValidationError, field_validator

from tributary.streaming import ToolCallFragment
from tributary.usage import Usage

logger = logging.getLogger(__name__)


class StreamingFunction(BaseModel):
    name: str | None = None
    arguments: str = ""

    @field_validator("arguments", mode="before")
    @classmethod
    def _null_arguments(cls, value):
        return "" if value is None else value


class StreamingToolCall(BaseModel):
    index: int
    id: str | None = None
    function: StreamingFunction


class StreamingDelta(BaseModel):
    content: str | None = None
    reasoning_content: str | None = None
    tool_calls: list[StreamingToolCall] = Field(default_factory=list)

    @field_validator("tool_calls", mode="before")
    @classmethod
    def _null_tool_calls(cls, value):
        return [] if value is None else value


class StreamingChoice(BaseModel):
    delta: StreamingDelta


class StreamingCompletionChunk(BaseModel):
    choices: list[StreamingChoice]
    usage: Usage | None = None


@dataclass
class Delta:
    """The part of an assistant message carried by one frame."""

    content: str | None = None
    reasoning_content: str | None = None
    tool_call_fragments: list[ToolCallFragment] = field(default_factory=list)


@dataclass
class ParsedFrame:
    delta: Delta
    usage: Usage | None = None


def parse_frame(payload: str) -> ParsedFrame | None:
    """Parse one payload, returning ``None`` for a malformed frame."""
    try:
        chunk = StreamingCompletionChunk.model_validate_json(payload)
    except ValidationError as e:
        logger.debug(f"Couldn't parse frame as a completion chunk: {e}")
        return None

    delta = Delta()
    if chunk.choices:
        wire = chunk.choices[0].delta
        delta = Delta(
            content=wire.content,
            reasoning_content=wire.reasoning_content,
            tool_call_fragments=[
                ToolCallFragment(
                    slot=tc.index,
                    id=tc.id,
                    name=tc.function.name,
                    arguments_piece=tc.function.arguments,
                )
                for tc in wire.tool_calls
            ],
        )
    return ParsedFrame(delta=delta, usage=chunk.usage)
