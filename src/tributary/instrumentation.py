"""Optional OpenTelemetry instrumentation for tributary.

Call ``instrument()`` once at startup to enable tracing.
Requires ``opentelemetry-api`` to be installed; the library works
identically without it.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "tributary") -> None:
    """Enable OpenTelemetry tracing for completion streams.

    Call once at startup, after configuring your TracerProvider.
    Requires ``opentelemetry-api``: ``pip install tributary[otel]``

    Example::

        from opentelemetry import trace
        from opentelemetry.sdk.trace import TracerProvider

        trace.set_tracer_provider(TracerProvider())

        from tributary.instrumentation import instrument
        instrument()

    Args:
        tracer_name: Name passed to ``trace.get_tracer()``.

    Raises:
        ImportError: If ``opentelemetry-api`` is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "opentelemetry-api is required for instrumentation. "
            "Install it with: pip install tributary[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info(
            "No TracerProvider configured; spans will be "
            "discarded. Set up a TracerProvider to export "
            "traces."
        )
    else:
        logger.info("Tributary instrumentation enabled")


def uninstrument() -> None:
    """Disable OpenTelemetry tracing.

    Subsequent streams will not emit spans.
    """
    global _tracer
    _tracer = None


@asynccontextmanager
async def stream_span(system: str, model: str):
    """Wrap the consumption of one completion stream in a ``chat`` span.

    The span is started detached from the current context: a stream is
    consumed across many suspensions of an async generator, and an
    attached span would be detached from a different context than the
    one it was attached in.
    """
    if _tracer is None:
        yield None
        return
    from opentelemetry.trace import SpanKind

    span = _tracer.start_span(
        f"chat {model}",
        kind=SpanKind.CLIENT,
        attributes={
            "gen_ai.operation.name": "chat",
            "gen_ai.provider.name": system,
            "gen_ai.request.model": model,
        },
    )
    try:
        yield span
    finally:
        span.end()


def record_usage(span, usage) -> None:
    """Set token-usage attributes on a span."""
    if span is None or usage is None:
        return
    prompt_tokens = getattr(usage, "prompt_tokens", None)
    if prompt_tokens is not None:
        span.set_attribute("gen_ai.usage.input_tokens", prompt_tokens)
    completion_tokens = getattr(usage, "completion_tokens", None)
    if completion_tokens is None:
        total_tokens = getattr(usage, "total_tokens", None)
        if total_tokens is not None and prompt_tokens is not None:
            completion_tokens = total_tokens - prompt_tokens
    if completion_tokens is not None:
        span.set_attribute("gen_ai.usage.output_tokens", completion_tokens)


def record_error(span, error_type: str, message: str) -> None:
    """Set ERROR status on a span for a failed stream.

    Sets ``error.type`` per GenAI semantic conventions.
    No-ops when *span* is ``None`` (tracing disabled).
    """
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, message)
    span.set_attribute("error.type", error_type)


def record_exception(span, exception: BaseException) -> None:
    """Record an exception and set ERROR status on a span."""
    if span is None:
        return
    span.record_exception(exception)
    record_error(span, type(exception).__qualname__, str(exception))
