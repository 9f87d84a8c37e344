"""
IELTS Prep - Telemetry Module
OpenTelemetry-based tracing for the evaluation pipeline and LLM calls
"""
import logging
from contextlib import contextmanager
from typing import Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Status, StatusCode

from ieltsprep.core.config import settings

logger = logging.getLogger(__name__)

TRACER_NAME = "ieltsprep.evaluation"

# Global tracer instance
_tracer: Optional[trace.Tracer] = None


def init_telemetry() -> trace.Tracer:
    """
    Initialize OpenTelemetry with an OTLP exporter.
    Call this once at application startup (only when OTEL_ENABLED).
    """
    global _tracer

    if _tracer is not None:
        return _tracer

    resource = Resource.create({
        "service.name": settings.OTEL_SERVICE_NAME,
        "service.version": settings.APP_VERSION,
        "deployment.environment": settings.ENVIRONMENT,
    })

    provider = TracerProvider(resource=resource)

    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        otlp_exporter = OTLPSpanExporter(
            endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT,
            insecure=True,
        )
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
    except Exception as e:
        logger.warning(f"[Telemetry] Failed to configure OTLP exporter: {e}")
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer(TRACER_NAME, settings.APP_VERSION)

    logger.info(
        f"[Telemetry] Initialized with service: {settings.OTEL_SERVICE_NAME}, "
        f"endpoint: {settings.OTEL_EXPORTER_OTLP_ENDPOINT}"
    )
    return _tracer


def get_tracer() -> trace.Tracer:
    """
    Get the tracer.

    Falls back to the globally registered provider (a no-op one unless
    init_telemetry() ran), so spans are always safe to open.
    """
    if _tracer is not None:
        return _tracer
    return trace.get_tracer(TRACER_NAME)


@contextmanager
def stage_span(name: str, attributes: Optional[dict] = None):
    """
    Context manager for one evaluation pipeline stage.

    Usage:
        with stage_span("pipeline.transcription", {"module": "SPEAKING"}) as span:
            result = await transcriber.transcribe(audio)
    """
    tracer = get_tracer()
    with tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                span.set_attribute(key, str(value) if value is not None else "")

        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise


def trace_llm_call(
    model: str,
    prompt_tokens: int = 0,
    completion_tokens: int = 0,
    total_tokens: int = 0,
):
    """
    Record LLM-specific telemetry attributes on the current span.
    Call this within an active span to add token usage metrics.
    """
    span = trace.get_current_span()
    if span:
        span.set_attribute("llm.model", model)
        span.set_attribute("llm.tokens.prompt", prompt_tokens)
        span.set_attribute("llm.tokens.completion", completion_tokens)
        span.set_attribute("llm.tokens.total", total_tokens)
