"""Stream a completion and print reconciled events as they arrive.

Demonstrates:

- Reasoning content merged into (or split from) the answer text

- Tool calls reassembled from streamed fragments

- OpenTelemetry tracing with ConsoleSpanExporter

Usage:
    uv run --env-file=.env examples/stream_example.py --provider deepseek --model deepseek-reasoner
    uv run --env-file=.env examples/stream_example.py --provider openai --model gpt-4o-mini --tools --trace
    uv run examples/stream_example.py --provider local --url http://localhost:11434/v1 --model qwen3 --split
"""

import argparse
import asyncio
import logging

from tributary.events import ErrorEvent, FinalResponse, TextDelta, ToolCallReady
from tributary.message import Message, MessageRole
from tributary.provider import (
    DEEPSEEK_REASONER,
    DeepSeekProvider,
    ModelProvider,
    OpenAICompatibleProvider,
    OpenAIProvider,
    OpenRouter,
)

PROVIDERS = {
    "openai": lambda url: OpenAIProvider(),
    "openrouter": lambda url: OpenRouter(),
    "deepseek": lambda url: DeepSeekProvider(),
    "local": lambda url: OpenAICompatibleProvider(url, system="local"),
}

WEATHER_TOOL = {
    "type": "function",
    "function": {
        "name": "get_weather",
        "description": "Current weather for a city.",
        "parameters": {
            "type": "object",
            "properties": {"loc": {"type": "string"}},
            "required": ["loc"],
        },
    },
}


def make_provider(provider: str, url: str | None) -> ModelProvider:
    if provider == "local" and not url:
        raise SystemExit("--url is required for local provider")
    return PROVIDERS[provider](url)


def setup_tracing(service_name: str):
    from opentelemetry import trace
    from opentelemetry.sdk.resources import SERVICE_NAME, Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import (
        SimpleSpanProcessor, ConsoleSpanExporter,
    )
    from tributary.instrumentation import instrument

    provider = TracerProvider(
        resource=Resource({SERVICE_NAME: service_name})
    )
    provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    instrument()


async def main():
    parser = argparse.ArgumentParser(description="Stream a chat completion")
    parser.add_argument("--provider", choices=PROVIDERS, default="deepseek")
    parser.add_argument("--model", default=DEEPSEEK_REASONER)
    parser.add_argument("--url", default=None)
    parser.add_argument("--prompt", default="What's the weather like in Lisbon?")
    parser.add_argument("--tools", action="store_true")
    parser.add_argument("--split", action="store_true",
                        help="Emit reasoning and answer as separate text events")
    parser.add_argument("--trace", action="store_true")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    if args.trace:
        setup_tracing("tributary-example")

    provider = make_provider(args.provider, args.url)
    messages = [Message(role=MessageRole.USER, content=args.prompt)]

    stream = await provider.open_stream(
        args.model,
        messages,
        tools=[WEATHER_TOOL] if args.tools else None,
        include_reason_in_content=not args.split,
    )
    async with stream:
        async for event in stream:
            if isinstance(event, TextDelta):
                print(event.text, end="", flush=True)
            elif isinstance(event, ToolCallReady):
                print(f"\n[tool call] {event.name}({event.arguments}) id={event.id}")
            elif isinstance(event, FinalResponse):
                print(f"\n[usage] {event.usage.model_dump()}")
            elif isinstance(event, ErrorEvent):
                print(f"\n[error] {event.kind.value}: {event.message}")


if __name__ == "__main__":
    asyncio.run(main())
