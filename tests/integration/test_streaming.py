"""Tests for folding event streams into responses and re-encoding as SSE."""

import json

import pytest

from tributary.errors import ErrorKind
from tributary.events import ErrorEvent, FinalResponse, TextDelta, ToolCallReady
from tributary.message import MessageRole, ToolCallRequestMessage
from tributary.reconcile import reconcile_stream
from tributary.response import StreamedResponse
from tributary.sse import sse_generator
from tributary.usage import Usage

from tests.conftest import byte_stream, frame, reasoning_body, weather_tool_body


async def events_of(*events):
    for event in events:
        yield event


def parse_sse(frames: list[str]) -> list[tuple[str, dict]]:
    parsed = []
    for f in frames:
        event_line, data_line = f.rstrip("\n").split("\n")
        parsed.append((
            event_line.removeprefix("event: "),
            json.loads(data_line.removeprefix("data: ")),
        ))
    return parsed


# ---------------------------------------------------------------------------
# StreamedResponse
# ---------------------------------------------------------------------------

class TestStreamedResponse:
    @pytest.mark.asyncio
    async def test_text_concatenated(self):
        response = await StreamedResponse.from_events(
            reconcile_stream(byte_stream([frame(content="Hel"), frame(content="lo")])),
        )

        assert response.text == "Hello"
        assert response.tool_calls == []
        assert response.complete
        assert response.error is None

    @pytest.mark.asyncio
    async def test_reasoning_merged_text(self):
        response = await StreamedResponse.from_events(
            reconcile_stream(byte_stream([reasoning_body()])),
        )
        assert response.text == "<think>\nR\n</think>\nC"

    @pytest.mark.asyncio
    async def test_tool_calls_and_usage(self):
        response = await StreamedResponse.from_events(
            reconcile_stream(byte_stream([weather_tool_body()])),
        )

        assert [tc.name for tc in response.tool_calls] == ["get_weather"]
        assert response.usage == Usage(prompt_tokens=12, total_tokens=30)

    @pytest.mark.asyncio
    async def test_error_keeps_partial_output(self):
        error = ErrorEvent(kind=ErrorKind.TRANSPORT, message="reset")
        response = await StreamedResponse.from_events(
            events_of(TextDelta(text="par"), TextDelta(text="tial"), error),
        )

        assert response.text == "partial"
        assert response.error is error
        assert not response.complete
        assert response.usage == Usage()

    def test_to_messages_text_only(self):
        response = StreamedResponse(text="Hi there", complete=True)
        messages = response.to_messages()

        assert len(messages) == 1
        assert messages[0].role == MessageRole.ASSISTANT
        assert messages[0].content == "Hi there"

    def test_to_messages_with_tool_calls(self):
        call = ToolCallReady(id="call_1", name="get_weather", arguments={"loc": "NYC"})
        response = StreamedResponse(text="Checking.", tool_calls=[call])
        messages = response.to_messages()

        assert [m.content for m in messages] == ["Checking.", ""]
        assert isinstance(messages[1], ToolCallRequestMessage)
        assert messages[1].model_dump()["tool_calls"][0]["function"] == {
            "name": "get_weather",
            "arguments": '{"loc": "NYC"}',
        }

    def test_to_messages_empty(self):
        assert StreamedResponse().to_messages() == []


# ---------------------------------------------------------------------------
# SSE re-encoding
# ---------------------------------------------------------------------------

class TestSSE:
    @pytest.mark.asyncio
    async def test_sse_frames_end_with_done(self):
        frames = [
            f async for f in sse_generator(
                reconcile_stream(byte_stream([frame(content="Hi")])),
            )
        ]

        assert len(frames) == 3
        assert frames[0].startswith("event: TextDelta\n")
        assert frames[1].startswith("event: FinalResponse\n")
        assert frames[2] == "event: done\ndata: {}\n\n"
        for f in frames:
            assert f.endswith("\n\n")

    @pytest.mark.asyncio
    async def test_sse_payloads(self):
        frames = [
            f async for f in sse_generator(events_of(
                TextDelta(text="Hello world"),
                ToolCallReady(id="c1", name="f", arguments={"a": [1, 2]}),
                FinalResponse(usage=Usage.model_validate(
                    {"prompt_tokens": 1, "total_tokens": 3, "completion_tokens": 2},
                )),
            ))
        ]

        assert parse_sse(frames[:-1]) == [
            ("TextDelta", {"text": "Hello world"}),
            ("ToolCallReady", {"id": "c1", "name": "f", "arguments": {"a": [1, 2]}}),
            ("FinalResponse", {"usage": {
                "prompt_tokens": 1, "total_tokens": 3, "completion_tokens": 2,
            }}),
        ]

    @pytest.mark.asyncio
    async def test_sse_error_payload(self):
        frames = [
            f async for f in sse_generator(events_of(
                ErrorEvent(kind=ErrorKind.DECODE, message="bad byte"),
            ))
        ]

        assert parse_sse(frames[:1]) == [
            ("ErrorEvent", {"kind": "decode_error", "message": "bad byte"}),
        ]
        assert frames[-1] == "event: done\ndata: {}\n\n"
