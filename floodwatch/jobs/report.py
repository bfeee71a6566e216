"""
Run report — what happened to each location in one batch run.
"""

from __future__ import annotations

import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class OutcomeStatus(str, Enum):
    """Final state of one location in a run."""
    ALERTED = "alerted"                      # gate passed, notification accepted
    NO_ALERT = "no_alert"                    # gate did not pass
    FETCH_FAILED = "fetch_failed"            # weather API failed
    PREDICTION_FAILED = "prediction_failed"  # prediction service failed
    NOTIFY_FAILED = "notify_failed"          # gate passed, notification failed
    ERROR = "error"                          # unexpected exception


@dataclass
class LocationOutcome:
    location: str
    status: OutcomeStatus
    likelihood: Optional[Union[int, float]] = None
    flood_date: Optional[str] = None
    error: Optional[str] = None
    duration_ms: float = 0.0

    @property
    def alert_attempted(self) -> bool:
        return self.status in (OutcomeStatus.ALERTED, OutcomeStatus.NOTIFY_FAILED)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "location": self.location,
            "status": self.status.value,
            "duration_ms": round(self.duration_ms, 1),
        }
        if self.likelihood is not None:
            d["likelihood"] = self.likelihood
        if self.flood_date is not None:
            d["date"] = self.flood_date
        if self.error:
            d["error"] = self.error
        return d


def _generate_run_id() -> str:
    return uuid.uuid4().hex[:8]


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RunReport:
    """Aggregate of all location outcomes for one run, in registry order."""
    run_id: str = field(default_factory=_generate_run_id)
    started_at: datetime = field(default_factory=_now)
    finished_at: Optional[datetime] = None
    outcomes: List[LocationOutcome] = field(default_factory=list)

    @property
    def counts(self) -> Dict[str, int]:
        tally = Counter(o.status for o in self.outcomes)
        return {status.value: tally.get(status, 0) for status in OutcomeStatus}

    @property
    def failed(self) -> List[LocationOutcome]:
        return [
            o for o in self.outcomes
            if o.status not in (OutcomeStatus.ALERTED, OutcomeStatus.NO_ALERT)
        ]

    @property
    def duration_seconds(self) -> float:
        end = self.finished_at or _now()
        return (end - self.started_at).total_seconds()

    def summary(self) -> str:
        c = self.counts
        return (
            f"{len(self.outcomes)} locations: {c['alerted']} alerted, "
            f"{c['no_alert']} no alert, {len(self.failed)} failed"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": round(self.duration_seconds, 2),
            "total": len(self.outcomes),
            "counts": self.counts,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }
