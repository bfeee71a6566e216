"""
Prediction service request / response models.

The service itself is opaque: we only check that the response has the
shape the alert gate needs. Likelihood is passed through as returned
(nominally 0-100) without range checks.
"""

from __future__ import annotations

from typing import List, Union

from pydantic import BaseModel, ConfigDict, Field

from floodwatch.ingestion.forecast_client import FORECAST_DAYS
from floodwatch.locations import Location

RAINFALL_DAYS = FORECAST_DAYS


class PredictionRequest(BaseModel):
    """Feature set submitted for one location."""

    model_config = ConfigDict(frozen=True)

    location: str
    rainfall_7_days: List[float] = Field(
        ..., min_length=RAINFALL_DAYS, max_length=RAINFALL_DAYS,
        description="Daily precipitation totals (mm), today first",
    )
    soil_moisture: int = Field(..., description="Baseline soil moisture (%)")
    elevation: int = Field(..., description="Elevation in metres")

    @classmethod
    def for_location(cls, location: Location, rainfall: List[float]) -> "PredictionRequest":
        return cls(
            location=location.name,
            rainfall_7_days=rainfall,
            soil_moisture=location.soil_moisture,
            elevation=location.elevation,
        )


class PredictionResult(BaseModel):
    """Prediction service response."""

    model_config = ConfigDict(extra="ignore")

    likelihood: Union[int, float] = Field(..., description="Flood likelihood, 0-100 scale")
    flood_expected: bool
    date: str = Field(..., description="Expected flood date as returned by the service")
