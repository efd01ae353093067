import logging
import os
from contextlib import AsyncExitStack, aclosing
from typing import Any

from openai import APIConnectionError, APIStatusError, AsyncOpenAI
from pydantic import BaseModel

from tributary.config import StreamConfig
from tributary.errors import ProviderError, TransportError
from tributary.events import ErrorEvent, FinalResponse
from tributary.instrumentation import record_error, record_usage, stream_span
from tributary.message import Message
from tributary.reconcile import reconcile_stream
from tributary.response import StreamedResponse

logger = logging.getLogger(__name__)

DEEPSEEK_REASONER = "deepseek-reasoner"


class CompletionStream:
    """The events of one streamed completion, read at most once.

    Owns the open HTTP response; iterating to the end, closing the
    iterator early, or leaving ``async with`` releases it.

    Example::

        stream = await provider.open_stream("deepseek-reasoner", messages)
        async with stream:
            async for event in stream:
                ...
    """

    def __init__(
        self,
        response,
        exit_stack: AsyncExitStack,
        config: StreamConfig,
        system: str,
        model: str,
    ):
        self.response = response
        self.config = config
        self.system = system
        self.model = model
        self._exit_stack = exit_stack
        self._consumed = False

    def __aiter__(self):
        if self._consumed:
            raise RuntimeError(
                "CompletionStream can only be iterated once; open a new stream"
            )
        self._consumed = True
        return self._events()

    async def _events(self):
        try:
            async with stream_span(self.system, self.model) as span:
                events = reconcile_stream(self.response.iter_bytes(), self.config)
                async with aclosing(events):
                    async for event in events:
                        if isinstance(event, FinalResponse):
                            record_usage(span, event.usage)
                        elif isinstance(event, ErrorEvent):
                            record_error(span, event.kind.value, event.message)
                        yield event
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        await self._exit_stack.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def collect(self) -> StreamedResponse:
        """Drain the stream into a :class:`StreamedResponse`."""
        return await StreamedResponse.from_events(self)


class ModelProvider:
    system = "unknown"

    async def open_stream(
            self,
            model: str,
            messages: list[Message | dict],
            tools: list[dict] | None = None,
            **params: Any,
    ) -> CompletionStream:
        raise NotImplementedError

    async def stream(
            self,
            model: str,
            messages: list[Message | dict],
            tools: list[dict] | None = None,
            **params: Any,
    ) -> StreamedResponse:
        stream = await self.open_stream(model, messages, tools=tools, **params)
        async with stream:
            return await stream.collect()


class OpenAICompatibleProvider(ModelProvider):
    """Streams chat completions from any OpenAI-compatible endpoint.

    ``include_reason_in_content`` and ``include_reason_in_content_tag``
    may be passed per request alongside other params; they configure the
    stream and are never sent upstream.  Everything else in ``params`` is
    forwarded in the request body.

    Args:
        base_url: API root, e.g. ``http://localhost:11434/v1``.
        api_key: Defaults to ``"DUMMY"`` for servers without auth.
        system: Provider name reported in telemetry.
        config: Default reasoning merge policy for this provider.
        client: Pre-built ``AsyncOpenAI`` client; overrides the above.
    """

    system = "openai_compatible"

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        system: str | None = None,
        config: StreamConfig | None = None,
        client: AsyncOpenAI | None = None,
        **client_kwargs: Any,
    ):
        self.base_url = base_url.rstrip("/")
        if system is not None:
            self.system = system
        self.config = config or StreamConfig()
        self.client = client or AsyncOpenAI(
            base_url=self.base_url,
            api_key=api_key or "DUMMY",
            **client_kwargs,
        )

    def build_request(
            self,
            model: str,
            messages: list[Message | dict],
            tools: list[dict] | None,
            params: dict[str, Any],
    ) -> dict[str, Any]:
        request: dict[str, Any] = dict(
            model=model,
            messages=[
                m.model_dump() if isinstance(m, BaseModel) else m
                for m in messages
            ],
            stream=True,
            stream_options={"include_usage": True},
        )
        if tools:
            request["tools"] = tools
            request["tool_choice"] = "auto"
        if params:
            request["extra_body"] = params
        return request

    async def open_stream(
            self,
            model: str,
            messages: list[Message | dict],
            tools: list[dict] | None = None,
            **params: Any,
    ) -> CompletionStream:
        """Send the request and return its event stream.

        Raises:
            ProviderError: The provider answered with a non-2xx status.
            TransportError: The request could not be sent.
        """
        config, params = StreamConfig.from_params(params, default=self.config)
        request = self.build_request(model, messages, tools, params)

        exit_stack = AsyncExitStack()
        try:
            response = await exit_stack.enter_async_context(
                self.client.chat.completions.with_streaming_response.create(
                    **request
                )
            )
        except APIStatusError as e:
            await exit_stack.aclose()
            logger.warning(f"{self.system} returned {e.status_code} for {model}")
            raise ProviderError(e.status_code, e.response.text) from e
        except APIConnectionError as e:
            await exit_stack.aclose()
            raise TransportError(f"Could not reach {self.base_url}: {e}") from e

        return CompletionStream(
            response, exit_stack, config, system=self.system, model=model,
        )


class OpenAIProvider(OpenAICompatibleProvider):
    system = "openai"

    def __init__(self, api_key: str | None = None, **kwargs: Any):
        if not api_key:
            api_key = os.getenv("OPENAI_API_KEY")
        kwargs.setdefault("max_retries", 5)
        kwargs.setdefault("timeout", 600.0)
        super().__init__(
            base_url="https://api.openai.com/v1", api_key=api_key, **kwargs,
        )


class OpenRouter(OpenAICompatibleProvider):
    system = "openrouter"

    def __init__(self, api_key: str | None = None, **kwargs: Any):
        if not api_key:
            api_key = os.getenv("OPENROUTER_API_KEY")
        kwargs.setdefault("max_retries", 5)
        kwargs.setdefault("timeout", 180.0)
        super().__init__(
            base_url="https://openrouter.ai/api/v1", api_key=api_key, **kwargs,
        )


class DeepSeekProvider(OpenAICompatibleProvider):
    """DeepSeek, whose ``deepseek-reasoner`` streams ``reasoning_content``."""

    system = "deepseek"

    def __init__(self, api_key: str | None = None, **kwargs: Any):
        if not api_key:
            api_key = os.getenv("DEEPSEEK_API_KEY")
        kwargs.setdefault("max_retries", 5)
        kwargs.setdefault("timeout", 600.0)
        super().__init__(
            base_url="https://api.deepseek.com", api_key=api_key, **kwargs,
        )
