"""
Observability setup:
  - OpenTelemetry distributed tracing → Jaeger (via OTLP gRPC)
  - Prometheus metrics: recommendation latency, pool sizes, degraded calls

Both are initialised once at startup and injected into FastAPI via middleware.
"""
import logging

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from prometheus_client import Counter, Histogram

from dance_recs.config import settings

logger = logging.getLogger(__name__)

# ─────────────────────────── Prometheus Metrics ───────────────────────────
RECOMMENDATION_LATENCY = Histogram(
    "recommendation_latency_seconds",
    "Time to load, score and rank one recommendation domain",
    ["domain"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0],
)

CANDIDATE_POOL_SIZE = Histogram(
    "recommendation_candidate_pool_size",
    "Candidates considered per recommendation call",
    ["domain"],
    buckets=[0, 1, 10, 25, 50, 100, 200],
)

POOL_ERRORS_TOTAL = Counter(
    "recommendation_pool_errors_total",
    "Calls that degraded to an empty list because the pool could not be loaded",
    ["domain"],
)

FACTOR_ERRORS_TOTAL = Counter(
    "recommendation_factor_errors_total",
    "Candidates dropped because a scoring factor raised",
    ["domain", "factor"],
)

RECOMMENDATIONS_RETURNED_TOTAL = Counter(
    "recommendations_returned_total",
    "Ranked results returned to callers",
    ["domain"],
)


# ─────────────────────────── OpenTelemetry Setup ──────────────────────────
def setup_tracing(engine=None) -> None:  # noqa: ANN001
    """Configure the global OTel TracerProvider with OTLP/Jaeger export."""
    if not settings.tracing_enabled:
        logger.info("OTel tracing disabled")
        return

    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "deployment.environment": settings.environment,
        }
    )

    provider = TracerProvider(resource=resource)

    try:
        otlp_exporter = OTLPSpanExporter(
            endpoint=settings.otel_exporter_otlp_endpoint,
            insecure=True,
        )
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
        logger.info(
            "OTel tracing configured → %s", settings.otel_exporter_otlp_endpoint
        )
    except Exception as exc:
        logger.warning("Could not connect to OTLP exporter: %s — traces disabled", exc)

    trace.set_tracer_provider(provider)

    # Auto-instrument the DB driver so every batched query shows up as a span
    if engine is not None:
        SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


def instrument_app(app) -> None:  # noqa: ANN001
    """Call after app is created to add FastAPI request spans."""
    if settings.tracing_enabled:
        FastAPIInstrumentor.instrument_app(app)
