import json

import httpx
import pytest
from openai import AsyncOpenAI

from tributary.provider import OpenAICompatibleProvider


# ---------------------------------------------------------------------------
# Frame builders (mirror the OpenAI chat-completions stream shape)
# ---------------------------------------------------------------------------

def tool_call(
    index: int,
    arguments: str = "",
    name: str | None = None,
    call_id: str | None = None,
) -> dict:
    """One entry of ``delta.tool_calls``."""
    function = {"arguments": arguments}
    if name is not None:
        function["name"] = name
    tc = {"index": index, "function": function}
    if call_id is not None:
        tc["id"] = call_id
    return tc


def chunk_json(
    content: str | None = None,
    reasoning: str | None = None,
    tool_calls: list[dict] | None = None,
    usage: dict | None = None,
    with_choice: bool = True,
) -> str:
    delta = {}
    if content is not None:
        delta["content"] = content
    if reasoning is not None:
        delta["reasoning_content"] = reasoning
    if tool_calls is not None:
        delta["tool_calls"] = tool_calls
    body = {"choices": [{"index": 0, "delta": delta}] if with_choice else []}
    if usage is not None:
        body["usage"] = usage
    return json.dumps(body)


def frame(**kwargs) -> bytes:
    """A complete ``data:`` event for :func:`chunk_json` arguments."""
    return f"data: {chunk_json(**kwargs)}\n\n".encode()


DONE = b"data: [DONE]\n\n"


def split_every(data: bytes, size: int) -> list[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


async def byte_stream(chunks):
    """Async chunk source, as a transport would provide it."""
    for chunk in chunks:
        yield chunk


async def collect(events) -> list:
    return [e async for e in events]


# ---------------------------------------------------------------------------
# Canned bodies
# ---------------------------------------------------------------------------

def weather_tool_body() -> bytes:
    """A tool call delivered as start + two continuation fragments."""
    return b"".join([
        frame(tool_calls=[tool_call(0, name="get_weather", call_id="call_1")]),
        frame(tool_calls=[tool_call(0, arguments='{"loc')]),
        frame(tool_calls=[tool_call(0, arguments='":"NYC"}')]),
        frame(usage={"prompt_tokens": 12, "total_tokens": 30}, with_choice=False),
        DONE,
    ])


def reasoning_body(reasoning: str = "R", content: str = "C") -> bytes:
    return b"".join([
        frame(reasoning=reasoning),
        frame(content=content),
        DONE,
    ])


# ---------------------------------------------------------------------------
# Provider wired to an in-process transport
# ---------------------------------------------------------------------------

class MockTransportProvider:
    """Builds providers whose HTTP calls are answered by *handler*.

    Records every request so tests can inspect the outbound body.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []

    def bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]

    def make(self, handler, **kwargs) -> OpenAICompatibleProvider:
        def record(request: httpx.Request):
            self.requests.append(request)
            return handler(request)

        client = AsyncOpenAI(
            base_url="http://testserver/v1",
            api_key="test-key",
            max_retries=0,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(record)),
        )
        return OpenAICompatibleProvider(
            base_url="http://testserver/v1", client=client, **kwargs,
        )


def sse_response(chunks, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        headers={"content-type": "text/event-stream"},
        content=byte_stream(chunks),
    )


@pytest.fixture
def mock_transport():
    return MockTransportProvider()
