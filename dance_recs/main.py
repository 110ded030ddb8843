"""
Recommendation Service API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP), instrument the DB engine
  2. Initialise DB connection pool (TiDB)
  3. Create tables if not present
  4. Expose Prometheus /metrics endpoint

The service is read-only against the community database: it scores and
ranks people, events, instructors and posts for the requesting dancer.
"""
import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from dance_recs.config import settings
from dance_recs.database import engine, init_db
from dance_recs.telemetry import setup_tracing, instrument_app
from dance_recs.routers import recommendations

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
setup_tracing(engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of the database pool."""
    logger.info("Starting Recommendation Service (env=%s)", settings.environment)

    await init_db()

    logger.info("Database connected. API ready.")
    yield

    logger.info("Shutting down...")
    await engine.dispose()


app = FastAPI(
    title="Dance Community Recommendation API",
    description=(
        "Deterministic, explainable multi-factor recommendations for "
        "people, events, instructors and content."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(
    recommendations.router,
    prefix="/api/recommendations",
    tags=["Recommendations"],
)

# ── Prometheus metrics endpoint ────────────────────────────────────────────
# Mounted at /metrics, scraped by Prometheus
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
instrument_app(app)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": settings.service_name}
