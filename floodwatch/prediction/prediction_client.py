"""
prediction_client.py — HTTP client for the flood prediction service.

    POST {PREDICTION_API_URL}
    {
        "location": "Ikom",
        "rainfall_7_days": [12.4, 0.0, 3.1, 0.0, 44.0, 18.2, 7.5],
        "soil_moisture": 50,
        "elevation": 150
    }

    200 OK
    {"likelihood": 75, "flood_expected": true, "date": "2024-09-01"}

Any transport failure, non-2xx status, non-JSON body or missing field
raises PredictionError. No retry.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from floodwatch.core.config import Settings
from floodwatch.core.errors import PredictionError
from floodwatch.prediction.schemas import PredictionRequest, PredictionResult

logger = logging.getLogger(__name__)


class PredictionClient:
    """Submits feature sets to the prediction service."""

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.url = settings.PREDICTION_API_URL
        self._timeout = settings.HTTP_TIMEOUT_SECONDS
        self._http_client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if not self._owns_client:
            if self._http_client.is_closed:
                raise PredictionError("HTTP client is closed")
            return self._http_client
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def close(self) -> None:
        if self._owns_client and self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def predict(self, request: PredictionRequest) -> PredictionResult:
        """
        Request a flood prediction.

        Args:
            request: Feature set for one location.

        Returns:
            PredictionResult parsed from the service response.

        Raises:
            PredictionError: if the URL is unset, the call fails, or the
                response does not have the expected shape.
        """
        if not self.url:
            raise PredictionError("PREDICTION_API_URL is not configured")

        client = await self._get_client()
        try:
            response = await client.post(
                self.url, json=request.model_dump(), timeout=self._timeout,
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise PredictionError(
                f"HTTP {e.response.status_code}", status=e.response.status_code,
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise PredictionError(f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            raise PredictionError(f"Response is not valid JSON: {e}") from e

        try:
            result = PredictionResult.model_validate(body)
        except ValidationError as e:
            raise PredictionError(
                f"Malformed prediction response: {e.error_count()} invalid field(s)",
                body=body,
            ) from e

        logger.debug(
            "Prediction for %s: likelihood=%s flood_expected=%s date=%s",
            request.location, result.likelihood, result.flood_expected, result.date,
        )
        return result
