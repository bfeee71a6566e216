"""
orchestrator.py — Daily batch over every registered location.

═══════════════════════════════════════════════════════════════════════════
PER-LOCATION FLOW
═══════════════════════════════════════════════════════════════════════════

    ┌─────────────────────┐
    │  1. Fetch rainfall  │  Open-Meteo, 7 daily totals
    └─────────┬───────────┘   FetchError → log, outcome=fetch_failed
              │
              ▼
    ┌─────────────────────┐
    │  2. Predict         │  rainfall + soil moisture + elevation
    └─────────┬───────────┘   PredictionError → log, outcome=prediction_failed
              │
              ▼
    ┌─────────────────────┐
    │  3. Alert gate      │  likelihood >= 60 AND flood_expected
    └─────────┬───────────┘   fail → log, outcome=no_alert
              │ pass
              ▼
    ┌─────────────────────┐
    │  4. Notify          │  one POST, no retry
    └─────────────────────┘   NotifyError → log, outcome=notify_failed

═══════════════════════════════════════════════════════════════════════════
FAN-OUT / FAN-IN
═══════════════════════════════════════════════════════════════════════════

One asyncio task per location, bounded by a semaphore. Every task catches
its own failures and returns a LocationOutcome, so one location can never
stop another. run() returns only after every task has finished; the
outcomes are collected into a RunReport in registry order.

At shutdown drain() gives in-flight tasks a grace period and cancels the
rest. A cancelled location is reported as an error outcome.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Optional, Sequence, Set

from pydantic import ValidationError

from floodwatch.alerts.gate import should_alert
from floodwatch.alerts.models import AlertPayload
from floodwatch.alerts.notifier import Notifier
from floodwatch.core.config import Settings
from floodwatch.core.errors import FetchError, NotifyError, PredictionError
from floodwatch.core.logging_config import bind_log_context, set_log_context
from floodwatch.ingestion.forecast_client import ForecastClient
from floodwatch.jobs.report import LocationOutcome, OutcomeStatus, RunReport
from floodwatch.locations import Location
from floodwatch.prediction.prediction_client import PredictionClient
from floodwatch.prediction.schemas import PredictionRequest

logger = logging.getLogger(__name__)


class BatchOrchestrator:
    """
    Runs the forecast → prediction → gate → notify pipeline for every location.

    Usage:
        orchestrator = BatchOrchestrator(settings, locations, forecasts, predictions, notifier)
        report = await orchestrator.run()
        print(report.summary())
    """

    def __init__(
        self,
        settings: Settings,
        locations: Sequence[Location],
        forecast_client: ForecastClient,
        prediction_client: PredictionClient,
        notifier: Notifier,
    ):
        self.locations = tuple(locations)
        self.forecast_client = forecast_client
        self.prediction_client = prediction_client
        self.notifier = notifier
        self.max_concurrency = settings.MAX_CONCURRENT_LOCATIONS
        self.last_report: Optional[RunReport] = None
        self._inflight: Set[asyncio.Task] = set()

    async def run(self) -> RunReport:
        """Process every location once and return the collected outcomes."""
        report = RunReport()
        set_log_context(run_id=report.run_id)
        logger.info("🔍 Starting flood checks for %d locations", len(self.locations))

        tasks = []
        try:
            semaphore = asyncio.Semaphore(self.max_concurrency)
            tasks = [
                asyncio.create_task(
                    self._process_location(location, semaphore),
                    name=f"flood-check:{location.name}",
                )
                for location in self.locations
            ]
            self._inflight.update(tasks)
            results = await asyncio.gather(*tasks, return_exceptions=True)
            report.outcomes = [
                self._as_outcome(location, result)
                for location, result in zip(self.locations, results)
            ]
        finally:
            report.finished_at = datetime.now(timezone.utc)
            self.last_report = report
            logger.info(
                "Flood checks finished in %.1fs: %s",
                report.duration_seconds, report.summary(),
                extra={"run_id": report.run_id},
            )
            self._inflight.difference_update(tasks)
            set_log_context()

        return report

    @property
    def in_flight(self) -> int:
        return sum(1 for task in self._inflight if not task.done())

    async def drain(self, timeout: float) -> None:
        """Wait up to `timeout` seconds for running location checks, then cancel the rest."""
        pending = {task for task in self._inflight if not task.done()}
        if not pending:
            return
        logger.info("Waiting up to %.1fs for %d location check(s)", timeout, len(pending))
        _, pending = await asyncio.wait(pending, timeout=timeout)
        if pending:
            logger.warning("Cancelling %d location check(s) at shutdown", len(pending))
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

    @staticmethod
    def _as_outcome(location: Location, result) -> LocationOutcome:
        if isinstance(result, LocationOutcome):
            return result
        if isinstance(result, asyncio.CancelledError):
            return LocationOutcome(location.name, OutcomeStatus.ERROR, error="cancelled at shutdown")
        return LocationOutcome(
            location.name, OutcomeStatus.ERROR, error=f"{type(result).__name__}: {result}",
        )

    async def _process_location(
        self, location: Location, semaphore: asyncio.Semaphore,
    ) -> LocationOutcome:
        """Isolated unit of work for one location. Never raises."""
        async with semaphore:
            bind_log_context(location=location.name)
            start = time.perf_counter()
            try:
                outcome = await self.check_location(location)
            except Exception as e:
                logger.exception("Unexpected error processing %s", location.name)
                outcome = LocationOutcome(
                    location.name, OutcomeStatus.ERROR, error=f"{type(e).__name__}: {e}",
                )
            outcome.duration_ms = (time.perf_counter() - start) * 1000
            return outcome

    async def check_location(self, location: Location) -> LocationOutcome:
        """
        Run the full pipeline for one location.

        Service failures are caught here and turned into outcomes; anything
        else propagates to the caller.
        """
        name = location.name

        try:
            forecast = await self.forecast_client.fetch_rainfall(
                location.latitude, location.longitude,
            )
        except FetchError as e:
            logger.error("FetchError for %s: %s", name, e.reason, extra={"location": name})
            return LocationOutcome(name, OutcomeStatus.FETCH_FAILED, error=e.message)

        try:
            try:
                request = PredictionRequest.for_location(location, forecast.precipitation_sum)
            except ValidationError as e:
                raise PredictionError(
                    f"Invalid prediction request: {e.error_count()} invalid field(s)",
                ) from e
            prediction = await self.prediction_client.predict(request)
        except PredictionError as e:
            logger.error("PredictionError for %s: %s", name, e.reason, extra={"location": name})
            return LocationOutcome(name, OutcomeStatus.PREDICTION_FAILED, error=e.message)

        log_extra = {
            "location": name,
            "likelihood": prediction.likelihood,
            "flood_date": prediction.date,
        }

        if not should_alert(prediction):
            logger.info(
                "❌ No alert for %s (%s%% on %s, flood_expected=%s)",
                name, prediction.likelihood, prediction.date, prediction.flood_expected,
                extra=log_extra,
            )
            return LocationOutcome(
                name, OutcomeStatus.NO_ALERT,
                likelihood=prediction.likelihood, flood_date=prediction.date,
            )

        payload = AlertPayload.from_prediction(name, prediction)
        try:
            await self.notifier.send(payload)
        except NotifyError as e:
            logger.error("NotifyError for %s: %s", name, e.reason, extra=log_extra)
            return LocationOutcome(
                name, OutcomeStatus.NOTIFY_FAILED,
                likelihood=prediction.likelihood, flood_date=prediction.date,
                error=e.message,
            )

        logger.warning(
            "✅ Alert sent for %s: %s%% on %s",
            name, prediction.likelihood, prediction.date, extra=log_extra,
        )
        return LocationOutcome(
            name, OutcomeStatus.ALERTED,
            likelihood=prediction.likelihood, flood_date=prediction.date,
        )
