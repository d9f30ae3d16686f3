"""Optional OpenTelemetry instrumentation for zai-cli.

Spans cover outbound API requests and each streamed turn.  They are only
emitted after ``zai_cli.instrument()``; until then every helper here is a
no-op and ``opentelemetry-api`` is never imported.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "zai_cli", tracer_provider=None) -> None:
    """Turn on spans for API requests and streamed turns.

    Without *tracer_provider* the globally registered provider is used,
    so configure one first or every span is discarded.  ``zai-cli
    --trace`` passes a provider that prints spans to stderr.
    Requires ``opentelemetry-api``: ``pip install zai-cli[otel]``

    Example::

        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import (
            ConsoleSpanExporter,
            SimpleSpanProcessor,
        )

        provider = TracerProvider()
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

        import zai_cli
        zai_cli.instrument(tracer_provider=provider)

    Args:
        tracer_name: Instrumentation scope name for the tracer.
        tracer_provider: Provider to take the tracer from instead of the
            global one.

    Raises:
        ImportError: If ``opentelemetry-api`` is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "Tracing needs opentelemetry-api. "
            "Install it with: pip install zai-cli[otel]"
        )
    if tracer_provider is not None:
        _tracer = tracer_provider.get_tracer(tracer_name)
        logger.info(f"Tracing enabled with {type(tracer_provider).__name__}")
        return

    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info("Tracing enabled but no TracerProvider is registered; spans are dropped")
    else:
        logger.info("Tracing enabled with the global TracerProvider")


def uninstrument() -> None:
    """Disable OpenTelemetry tracing.

    Subsequent operations will not emit spans.
    """
    global _tracer
    _tracer = None


@asynccontextmanager
async def request_span(method: str, path: str):
    """Wrap an outbound API request in a CLIENT span."""
    if _tracer is None:
        yield None
        return
    from opentelemetry.trace import SpanKind

    with _tracer.start_as_current_span(
        f"{method} {path}",
        kind=SpanKind.CLIENT,
        attributes={
            "http.request.method": method,
            "url.path": path,
        },
    ) as span:
        yield span


@asynccontextmanager
async def stream_span(thread_id: str | None, message_index: int | None):
    """Wrap one streamed conversation turn in a span."""
    if _tracer is None:
        yield None
        return
    attributes = {"zai.operation.name": "stream_turn"}
    if thread_id is not None:
        attributes["zai.thread.id"] = thread_id
    if message_index is not None:
        attributes["zai.message.index"] = message_index
    with _tracer.start_as_current_span(
        "stream_turn", attributes=attributes,
    ) as span:
        yield span


def record_stream_result(span, result) -> None:
    """Set the answering agent and answer length on a span."""
    if span is None or result is None:
        return
    span.set_attribute("zai.response.length", len(result.content))
    if result.agent_name:
        span.set_attribute("zai.agent.name", result.agent_name)


def record_error(span, exception: BaseException) -> None:
    """Record an exception and set ERROR status on a span.

    No-ops when *span* is ``None`` (tracing disabled).
    """
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, str(exception))
    span.record_exception(exception)
    span.set_attribute(
        "error.type", type(exception).__qualname__
    )
