"""
Health check aggregation — deep health check for the relay.

Checks:
    • Scheduler running, with next fire times
    • Downstream service URLs configured (prediction, notification)
    • Outcome of the most recent batch run

Returns a structured health report suitable for uptime monitors and
load balancer checks. The plain liveness route lives in main.py.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from floodwatch.core.config import Settings
from floodwatch.jobs.orchestrator import BatchOrchestrator
from floodwatch.jobs.scheduler import FloodCheckScheduler

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"  # partial functionality
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"name": self.name, "status": self.status.value}
        if self.message:
            d["message"] = self.message
        if self.details:
            d["details"] = self.details
        return d


@dataclass
class HealthReport:
    version: str
    environment: str
    status: HealthStatus = HealthStatus.HEALTHY
    timestamp: str = ""
    uptime_seconds: float = 0.0
    components: List[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "version": self.version,
            "environment": self.environment,
            "timestamp": self.timestamp or datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(self.uptime_seconds, 1),
            "components": [c.to_dict() for c in self.components],
        }


# Track application start time
_start_time = time.monotonic()


def check_scheduler(scheduler: Optional[FloodCheckScheduler]) -> ComponentHealth:
    comp = ComponentHealth(name="scheduler")
    if scheduler is None:
        comp.status = HealthStatus.DEGRADED
        comp.message = "Scheduler disabled"
    elif not scheduler.is_running:
        comp.status = HealthStatus.UNHEALTHY
        comp.message = "Scheduler not running"
    else:
        comp.message = "Triggers active"
        comp.details = scheduler.get_status()
    return comp


def check_downstream_config(settings: Settings) -> ComponentHealth:
    comp = ComponentHealth(name="downstream_services")
    urls = {
        "prediction": settings.PREDICTION_API_URL,
        "notification": settings.NOTIFY_URL,
    }
    missing = [name for name, url in urls.items() if not url]
    comp.details = {"configured": [n for n in urls if n not in missing], "missing": missing}
    if missing:
        comp.status = HealthStatus.DEGRADED
        comp.message = f"Not configured: {', '.join(missing)}"
    else:
        comp.message = "All downstream URLs configured"
    return comp


def check_last_run(orchestrator: Optional[BatchOrchestrator]) -> ComponentHealth:
    comp = ComponentHealth(name="last_run")
    report = orchestrator.last_report if orchestrator else None
    if report is None:
        comp.message = "No run yet"
        return comp

    comp.details = {
        "run_id": report.run_id,
        "finished_at": report.finished_at.isoformat() if report.finished_at else None,
        "counts": report.counts,
    }
    comp.message = report.summary()
    if report.outcomes and len(report.failed) == len(report.outcomes):
        comp.status = HealthStatus.DEGRADED
    return comp


def run_health_check(
    settings: Settings,
    scheduler: Optional[FloodCheckScheduler],
    orchestrator: Optional[BatchOrchestrator],
) -> HealthReport:
    """Run all health checks and aggregate into a report."""
    report = HealthReport(
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=time.monotonic() - _start_time,
    )
    report.components = [
        check_scheduler(scheduler),
        check_downstream_config(settings),
        check_last_run(orchestrator),
    ]

    statuses = [c.status for c in report.components]
    if HealthStatus.UNHEALTHY in statuses:
        report.status = HealthStatus.UNHEALTHY
    elif HealthStatus.DEGRADED in statuses:
        report.status = HealthStatus.DEGRADED
    else:
        report.status = HealthStatus.HEALTHY

    return report
