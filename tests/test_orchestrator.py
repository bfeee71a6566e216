"""
test_orchestrator.py — Tests for the daily batch over all locations.

Covers:
    • Gate outcome → notifier called / not called
    • Per-location failure isolation (fetch, prediction, notify, unexpected)
    • Call counts across a full run
    • Run report ordering and counts
    • Bounded fan-out
    • Draining in-flight checks at shutdown

The three clients are replaced with in-memory fakes.

Run with:
    pytest tests/test_orchestrator.py -v
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Tuple, Union

import pytest

from floodwatch.alerts.models import AlertPayload
from floodwatch.core.config import Settings
from floodwatch.core.errors import FetchError, NotifyError, PredictionError
from floodwatch.ingestion.forecast_client import ForecastResult
from floodwatch.jobs.orchestrator import BatchOrchestrator
from floodwatch.jobs.report import OutcomeStatus, RunReport
from floodwatch.locations import DEFAULT_LOCATIONS, Location
from floodwatch.prediction.schemas import PredictionRequest, PredictionResult

RAIN = [12.4, 0.0, 3.1, 8.0, 44.0, 18.2, 7.5]

IKOM = Location("Ikom", 5.9667, 8.7167, 150, 50)
OBUDU = Location("Obudu", 6.6700, 9.2200, 280, 42)
BAKASSI = Location("Bakassi", 4.9260, 8.5290, 3, 58)


# ═══════════════════════════════════════════════════════════════════════════
# Fakes
# ═══════════════════════════════════════════════════════════════════════════

class FakeForecastClient:
    """Returns RAIN for every coordinate; raises for coordinates in `failures`."""

    def __init__(self, failures: Optional[Dict[Tuple[float, float], Exception]] = None, delay: float = 0.0):
        self.failures = failures or {}
        self.delay = delay
        self.calls: List[Tuple[float, float]] = []
        self.active = 0
        self.peak = 0

    async def fetch_rainfall(self, latitude: float, longitude: float) -> ForecastResult:
        self.calls.append((latitude, longitude))
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delay)
            exc = self.failures.get((latitude, longitude))
            if exc is not None:
                raise exc
            return ForecastResult(latitude, longitude, list(RAIN))
        finally:
            self.active -= 1


class FakePredictionClient:
    """Looks up a result or exception by location name."""

    def __init__(self, results: Dict[str, Union[PredictionResult, Exception]], default: Optional[PredictionResult] = None):
        self.results = results
        self.default = default or PredictionResult(likelihood=10, flood_expected=False, date="2024-09-01")
        self.requests: List[PredictionRequest] = []

    async def predict(self, request: PredictionRequest) -> PredictionResult:
        self.requests.append(request)
        outcome = self.results.get(request.location, self.default)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeNotifier:

    def __init__(self, fail_for: Tuple[str, ...] = ()):
        self.fail_for = fail_for
        self.sent: List[AlertPayload] = []

    async def send(self, payload: AlertPayload) -> None:
        self.sent.append(payload)
        if payload.location in self.fail_for:
            raise NotifyError("HTTP 500", location=payload.location)


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def _orchestrator(locations, forecasts=None, predictions=None, notifier=None, **overrides):
    return BatchOrchestrator(
        _settings(**overrides),
        locations,
        forecasts or FakeForecastClient(),
        predictions or FakePredictionClient({}),
        notifier or FakeNotifier(),
    )


def _run(orchestrator: BatchOrchestrator) -> RunReport:
    return asyncio.run(orchestrator.run())


def _alert(likelihood, flood_expected=True, date="2024-09-01") -> PredictionResult:
    return PredictionResult(likelihood=likelihood, flood_expected=flood_expected, date=date)


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Gate → Notifier
# ═══════════════════════════════════════════════════════════════════════════

class TestAlerting:

    def test_passing_prediction_notifies_once(self):
        notifier = FakeNotifier()
        predictions = FakePredictionClient({"Ikom": _alert(75, True, "2024-09-01")})
        report = _run(_orchestrator([IKOM], predictions=predictions, notifier=notifier))

        assert [p.model_dump() for p in notifier.sent] == [
            {"location": "Ikom", "percentage": 75, "date": "2024-09-01"},
        ]
        outcome = report.outcomes[0]
        assert outcome.status == OutcomeStatus.ALERTED
        assert outcome.likelihood == 75
        assert outcome.flood_date == "2024-09-01"

    def test_flood_not_expected_does_not_notify(self):
        notifier = FakeNotifier()
        predictions = FakePredictionClient({"Ikom": _alert(80, False)})
        report = _run(_orchestrator([IKOM], predictions=predictions, notifier=notifier))

        assert notifier.sent == []
        assert report.outcomes[0].status == OutcomeStatus.NO_ALERT

    def test_below_threshold_does_not_notify(self):
        notifier = FakeNotifier()
        predictions = FakePredictionClient({"Ikom": _alert(59, True)})
        _run(_orchestrator([IKOM], predictions=predictions, notifier=notifier))
        assert notifier.sent == []

    def test_no_alert_is_logged(self, caplog):
        caplog.set_level(logging.INFO)
        predictions = FakePredictionClient({"Ikom": _alert(42, True, "2024-09-02")})
        _run(_orchestrator([IKOM], predictions=predictions))
        assert "No alert for Ikom (42% on 2024-09-02" in caplog.text

    def test_prediction_request_features(self):
        predictions = FakePredictionClient({})
        _run(_orchestrator([OBUDU], predictions=predictions))
        assert predictions.requests[0].model_dump() == {
            "location": "Obudu",
            "rainfall_7_days": RAIN,
            "soil_moisture": 42,
            "elevation": 280,
        }


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Failure isolation
# ═══════════════════════════════════════════════════════════════════════════

class TestFailureIsolation:

    def test_fetch_failure_skips_prediction_for_that_location_only(self, caplog):
        caplog.set_level(logging.INFO)
        forecasts = FakeForecastClient(
            failures={(OBUDU.latitude, OBUDU.longitude): FetchError("HTTP 503")},
        )
        predictions = FakePredictionClient({"Ikom": _alert(75), "Bakassi": _alert(90)})
        notifier = FakeNotifier()

        report = _run(_orchestrator(
            [IKOM, OBUDU, BAKASSI], forecasts, predictions, notifier,
        ))

        assert [r.location for r in predictions.requests] == ["Ikom", "Bakassi"]
        assert sorted(p.location for p in notifier.sent) == ["Bakassi", "Ikom"]
        assert [o.status for o in report.outcomes] == [
            OutcomeStatus.ALERTED, OutcomeStatus.FETCH_FAILED, OutcomeStatus.ALERTED,
        ]
        assert "FetchError for Obudu" in caplog.text
        assert "HTTP 503" in caplog.text

    def test_prediction_failure_isolated(self):
        predictions = FakePredictionClient({
            "Ikom": PredictionError("HTTP 500"),
            "Obudu": _alert(61),
        })
        notifier = FakeNotifier()
        report = _run(_orchestrator([IKOM, OBUDU], predictions=predictions, notifier=notifier))

        assert [p.location for p in notifier.sent] == ["Obudu"]
        assert report.outcomes[0].status == OutcomeStatus.PREDICTION_FAILED
        assert "HTTP 500" in report.outcomes[0].error

    def test_notify_failure_is_recorded_not_retried(self):
        predictions = FakePredictionClient({"Ikom": _alert(75), "Obudu": _alert(88)})
        notifier = FakeNotifier(fail_for=("Ikom",))
        report = _run(_orchestrator([IKOM, OBUDU], predictions=predictions, notifier=notifier))

        assert [p.location for p in notifier.sent].count("Ikom") == 1
        assert report.outcomes[0].status == OutcomeStatus.NOTIFY_FAILED
        assert report.outcomes[0].alert_attempted is True
        assert report.outcomes[1].status == OutcomeStatus.ALERTED

    def test_unexpected_exception_contained(self):
        forecasts = FakeForecastClient(
            failures={(IKOM.latitude, IKOM.longitude): RuntimeError("boom")},
        )
        report = _run(_orchestrator([IKOM, OBUDU], forecasts))

        assert report.outcomes[0].status == OutcomeStatus.ERROR
        assert "RuntimeError" in report.outcomes[0].error
        assert report.outcomes[1].status == OutcomeStatus.NO_ALERT

    def test_short_rainfall_series_becomes_prediction_failure(self):
        class ShortForecast(FakeForecastClient):
            async def fetch_rainfall(self, latitude, longitude):
                return ForecastResult(latitude, longitude, RAIN[:5])

        predictions = FakePredictionClient({})
        report = _run(_orchestrator([IKOM], ShortForecast(), predictions))

        assert predictions.requests == []
        assert report.outcomes[0].status == OutcomeStatus.PREDICTION_FAILED

    def test_every_location_failing(self):
        forecasts = FakeForecastClient(failures={
            (loc.latitude, loc.longitude): FetchError("down") for loc in (IKOM, OBUDU)
        })
        report = _run(_orchestrator([IKOM, OBUDU], forecasts))
        assert len(report.failed) == 2
        assert report.counts["fetch_failed"] == 2


# ═══════════════════════════════════════════════════════════════════════════
# Section 3: Full run over the registry
# ═══════════════════════════════════════════════════════════════════════════

class TestFullRun:

    def test_call_counts(self):
        registry = list(DEFAULT_LOCATIONS)
        failing = registry[3]
        forecasts = FakeForecastClient(failures={
            (failing.latitude, failing.longitude): FetchError("timeout"),
        })
        predictions = FakePredictionClient({
            "Ikom": _alert(75), "Boki": _alert(60), "Obudu": _alert(95, False),
        })
        notifier = FakeNotifier()

        report = _run(_orchestrator(registry, forecasts, predictions, notifier))

        n = len(registry)
        assert len(forecasts.calls) == n
        assert len(predictions.requests) == n - 1
        assert sorted(p.location for p in notifier.sent) == ["Boki", "Ikom"]
        assert len(report.outcomes) == n

    def test_outcomes_follow_registry_order(self):
        # First location is the slowest; report order must not depend on finish order
        class SlowFirst(FakeForecastClient):
            async def fetch_rainfall(self, latitude, longitude):
                if (latitude, longitude) == (IKOM.latitude, IKOM.longitude):
                    await asyncio.sleep(0.05)
                return await super().fetch_rainfall(latitude, longitude)

        report = _run(_orchestrator([IKOM, OBUDU, BAKASSI], SlowFirst()))
        assert [o.location for o in report.outcomes] == ["Ikom", "Obudu", "Bakassi"]

    def test_concurrency_is_bounded(self):
        forecasts = FakeForecastClient(delay=0.01)
        _run(_orchestrator(list(DEFAULT_LOCATIONS), forecasts, MAX_CONCURRENT_LOCATIONS=3))
        assert 1 <= forecasts.peak <= 3

    def test_sequential_when_limit_is_one(self):
        forecasts = FakeForecastClient(delay=0.001)
        _run(_orchestrator([IKOM, OBUDU, BAKASSI], forecasts, MAX_CONCURRENT_LOCATIONS=1))
        assert forecasts.peak == 1

    def test_last_report_kept(self):
        orchestrator = _orchestrator([IKOM])
        assert orchestrator.last_report is None
        report = _run(orchestrator)
        assert orchestrator.last_report is report
        assert report.finished_at is not None
        assert report.finished_at >= report.started_at

    def test_each_run_is_independent(self):
        notifier = FakeNotifier()
        predictions = FakePredictionClient({"Ikom": _alert(75)})
        orchestrator = _orchestrator([IKOM], predictions=predictions, notifier=notifier)

        first = _run(orchestrator)
        second = _run(orchestrator)

        # No dedup across runs: a second trigger alerts again
        assert len(notifier.sent) == 2
        assert first.run_id != second.run_id

    def test_empty_registry(self):
        report = _run(_orchestrator([]))
        assert report.outcomes == []
        assert report.summary() == "0 locations: 0 alerted, 0 no alert, 0 failed"


# ═══════════════════════════════════════════════════════════════════════════
# Shutdown drain
# ═══════════════════════════════════════════════════════════════════════════

class BlockingForecastClient(FakeForecastClient):
    """Never returns for coordinates in `stuck`; everything else succeeds immediately."""

    def __init__(self, stuck: Tuple[Tuple[float, float], ...]):
        super().__init__()
        self.stuck = stuck

    async def fetch_rainfall(self, latitude: float, longitude: float) -> ForecastResult:
        if (latitude, longitude) in self.stuck:
            self.calls.append((latitude, longitude))
            await asyncio.Event().wait()
        return await super().fetch_rainfall(latitude, longitude)


class TestDrain:

    def test_drain_without_run_is_noop(self):
        orchestrator = _orchestrator([IKOM])
        asyncio.run(orchestrator.drain(0.01))
        assert orchestrator.in_flight == 0
        assert orchestrator.last_report is None

    def test_drain_waits_for_quick_checks(self):
        forecasts = FakeForecastClient(delay=0.01)
        orchestrator = _orchestrator([IKOM, OBUDU], forecasts)

        async def scenario():
            run = asyncio.create_task(orchestrator.run())
            await asyncio.sleep(0)
            await orchestrator.drain(5.0)
            return await run

        report = asyncio.run(scenario())
        assert report.counts[OutcomeStatus.NO_ALERT.value] == 2
        assert orchestrator.in_flight == 0

    def test_stuck_check_is_cancelled_and_reported(self):
        forecasts = BlockingForecastClient(stuck=((OBUDU.latitude, OBUDU.longitude),))
        notifier = FakeNotifier()
        predictions = FakePredictionClient({"Ikom": _alert(75)})
        orchestrator = _orchestrator([IKOM, OBUDU, BAKASSI], forecasts, predictions, notifier)

        async def scenario():
            run = asyncio.create_task(orchestrator.run())
            while len(forecasts.calls) < 3:
                await asyncio.sleep(0)
            await orchestrator.drain(0.01)
            return await asyncio.wait_for(run, timeout=1.0)

        report = asyncio.run(scenario())
        by_name = {o.location: o for o in report.outcomes}
        assert by_name["Ikom"].status == OutcomeStatus.ALERTED
        assert by_name["Bakassi"].status == OutcomeStatus.NO_ALERT
        assert by_name["Obudu"].status == OutcomeStatus.ERROR
        assert by_name["Obudu"].error == "cancelled at shutdown"
        assert orchestrator.last_report is report
        assert orchestrator.in_flight == 0
        assert [p.location for p in notifier.sent] == ["Ikom"]


class TestRunReport:

    def test_to_dict(self):
        predictions = FakePredictionClient({"Ikom": _alert(75)})
        report = _run(_orchestrator([IKOM, OBUDU], predictions=predictions))
        d = report.to_dict()

        assert d["run_id"] == report.run_id
        assert d["total"] == 2
        assert d["counts"]["alerted"] == 1
        assert d["counts"]["no_alert"] == 1
        assert d["outcomes"][0] == {
            "location": "Ikom",
            "status": "alerted",
            "likelihood": 75,
            "date": "2024-09-01",
            "duration_ms": pytest.approx(d["outcomes"][0]["duration_ms"]),
        }
