"""
models.py — Alert payload sent to the notification service.

Wire format:

    {"location": "Ikom", "percentage": 75, "date": "2024-09-01"}

The payload is built only for locations that pass the alert gate, sent
once, and discarded.
"""

from __future__ import annotations

from typing import Union

from pydantic import BaseModel, ConfigDict

from floodwatch.prediction.schemas import PredictionResult


class AlertPayload(BaseModel):
    """Notification body for one location."""

    model_config = ConfigDict(frozen=True)

    location: str
    percentage: Union[int, float]
    date: str

    @classmethod
    def from_prediction(cls, location: str, result: PredictionResult) -> "AlertPayload":
        return cls(location=location, percentage=result.likelihood, date=result.date)
