"""
forecast_client.py — Open-Meteo daily rainfall forecast.

Fetches the 7-day daily precipitation series for one coordinate pair.

Request:

    GET https://api.open-meteo.com/v1/forecast
        ?latitude=5.9667&longitude=8.7167
        &daily=precipitation_sum
        &timezone=Africa/Lagos
        &forecast_days=7

Response (trimmed):

    {
        "daily": {
            "time": ["2024-08-26", ..., "2024-09-01"],
            "precipitation_sum": [12.4, 0.0, 3.1, 8.0, 44.0, 18.2, 7.5]
        }
    }

Day boundaries follow the configured timezone, so the first value is
"today" in the monitored region, not in UTC.

Error handling:
    - Transport failure, timeout, bad URL, non-2xx → FetchError
    - Missing `daily` / `precipitation_sum`, wrong length → FetchError
    - `null` or non-numeric day → FetchError (never forwarded as 0 mm)
    - One attempt per call. The scheduled run is the retry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from floodwatch.core.config import Settings
from floodwatch.core.errors import FetchError

logger = logging.getLogger(__name__)

DAILY_METRIC = "precipitation_sum"

# The prediction service takes exactly one week of daily totals
FORECAST_DAYS = 7


@dataclass
class ForecastResult:
    """Daily precipitation totals (mm) for the days starting today."""
    latitude: float
    longitude: float
    precipitation_sum: List[float]
    dates: List[str] = field(default_factory=list)

    @property
    def total_mm(self) -> float:
        return round(sum(self.precipitation_sum), 2)


class ForecastClient:
    """
    Client for the Open-Meteo forecast endpoint.

    A shared `http_client` is used as given and never replaced; once its
    owner closes it, every fetch fails with FetchError.

    Usage:
        client = ForecastClient(settings, http_client)
        forecast = await client.fetch_rainfall(5.9667, 8.7167)
        print(forecast.precipitation_sum)
    """

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.url = settings.OPEN_METEO_URL
        self.timezone = settings.FORECAST_TIMEZONE
        self._timeout = settings.HTTP_TIMEOUT_SECONDS
        self._http_client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get the shared client, or create a private one."""
        if not self._owns_client:
            if self._http_client.is_closed:
                raise FetchError("HTTP client is closed")
            return self._http_client
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client and self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    def _build_params(self, latitude: float, longitude: float) -> Dict[str, Any]:
        return {
            "latitude": latitude,
            "longitude": longitude,
            "daily": DAILY_METRIC,
            "timezone": self.timezone,
            "forecast_days": FORECAST_DAYS,
        }

    async def fetch_rainfall(self, latitude: float, longitude: float) -> ForecastResult:
        """
        Fetch the daily precipitation forecast for a coordinate pair.

        Raises:
            FetchError: on any transport, status or payload problem.
        """
        client = await self._get_client()
        params = self._build_params(latitude, longitude)

        try:
            response = await client.get(self.url, params=params, timeout=self._timeout)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise FetchError(
                f"HTTP {e.response.status_code}", status=e.response.status_code,
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchError(f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            raise FetchError(f"Response is not valid JSON: {e}") from e

        result = self._parse_response(data, latitude, longitude)
        logger.debug(
            "Fetched %d-day rainfall for lat=%.4f, lon=%.4f (total %.1f mm)",
            len(result.precipitation_sum), latitude, longitude, result.total_mm,
        )
        return result

    def _parse_response(self, data: Any, latitude: float, longitude: float) -> ForecastResult:
        """Validate the `daily` block and extract the precipitation series."""
        daily = data.get("daily") if isinstance(data, dict) else None
        if not isinstance(daily, dict):
            raise FetchError("Response has no 'daily' object")

        raw = daily.get(DAILY_METRIC)
        if not isinstance(raw, list):
            raise FetchError(f"Response has no daily '{DAILY_METRIC}' array")
        if len(raw) != FORECAST_DAYS:
            raise FetchError(f"Expected {FORECAST_DAYS} daily values, got {len(raw)}")

        values: List[float] = []
        for day, value in enumerate(raw, start=1):
            if value is None:
                raise FetchError(f"Missing precipitation value for day {day}")
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise FetchError(f"Non-numeric precipitation value for day {day}: {value!r}")
            values.append(float(value))

        dates = daily.get("time")
        return ForecastResult(
            latitude=latitude,
            longitude=longitude,
            precipitation_sum=values,
            dates=[str(d) for d in dates] if isinstance(dates, list) else [],
        )
