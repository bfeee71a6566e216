"""
FastAPI application entry point.

Run with:
    python -m floodwatch

Or:
    uvicorn floodwatch.main:app --port 3000

The HTTP surface is small: a plain-text liveness route for uptime pings,
health checks, and a view of the last batch run. The real work happens in
the scheduled jobs started by the lifespan below.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from floodwatch.alerts.notifier import Notifier
from floodwatch.api.v1.runs import router as runs_router
from floodwatch.core.config import Settings, get_settings
from floodwatch.core.errors import register_error_handlers
from floodwatch.core.health import HealthStatus, run_health_check
from floodwatch.core.logging_config import get_logger, setup_logging
from floodwatch.core.middleware import RequestLoggingMiddleware
from floodwatch.ingestion.forecast_client import ForecastClient
from floodwatch.jobs.orchestrator import BatchOrchestrator
from floodwatch.jobs.scheduler import FloodCheckScheduler
from floodwatch.locations import load_locations
from floodwatch.prediction.prediction_client import PredictionClient

logger = get_logger(__name__)

LIVENESS_MESSAGE = "🌊 Flood prediction server is alive!"


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application around one immutable Settings instance."""
    settings = settings or get_settings()
    setup_logging(settings)

    # ── Application lifespan (startup / shutdown) ──

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Starting %s v%s [%s] on port %d",
            settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT, settings.PORT,
        )
        for name in ("PREDICTION_API_URL", "NOTIFY_URL"):
            if not getattr(settings, name):
                logger.warning("%s is not set; every location will fail at that step", name)

        locations = load_locations(settings.LOCATIONS_FILE)
        http_client = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)
        orchestrator = BatchOrchestrator(
            settings,
            locations,
            ForecastClient(settings, http_client),
            PredictionClient(settings, http_client),
            Notifier(settings, http_client),
        )
        scheduler: Optional[FloodCheckScheduler] = None
        if settings.SCHEDULER_ENABLED:
            scheduler = FloodCheckScheduler(settings, orchestrator, http_client)
            scheduler.start()
        else:
            logger.warning("Scheduler disabled; no flood checks will run")

        app.state.settings = settings
        app.state.orchestrator = orchestrator
        app.state.scheduler = scheduler
        try:
            yield
        finally:
            if scheduler is not None:
                await scheduler.stop()
            await orchestrator.drain(settings.SHUTDOWN_GRACE_SECONDS)
            await http_client.aclose()
            logger.info("Shutting down %s", settings.APP_NAME)

    # ── Create application ──

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Daily flood-likelihood relay. Pulls the 7-day rainfall forecast "
            "from Open-Meteo for each monitored location, asks the prediction "
            "service for a flood likelihood, and notifies when the alert gate passes."
        ),
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )
    app.add_middleware(RequestLoggingMiddleware)
    register_error_handlers(app)
    app.include_router(runs_router)

    # ── Root & health endpoints ──

    @app.get("/", response_class=PlainTextResponse, tags=["health"])
    async def root() -> str:
        """Liveness route used by the keep-alive ping and uptime checks."""
        return LIVENESS_MESSAGE

    @app.get("/health", tags=["health"])
    async def health_check(request: Request):
        """Deep health check: scheduler, downstream config, last run."""
        report = run_health_check(
            request.app.state.settings,
            request.app.state.scheduler,
            request.app.state.orchestrator,
        )
        if report.status == HealthStatus.UNHEALTHY:
            return JSONResponse(status_code=503, content=report.to_dict())
        return report.to_dict()

    @app.get("/health/live", tags=["health"])
    async def liveness():
        return {"status": "alive"}

    return app


app = create_app()
