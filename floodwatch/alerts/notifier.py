"""
notifier.py — Delivery of flood alerts to the notification endpoint.

    POST {NOTIFY_URL}
    {"location": "Ikom", "percentage": 75, "date": "2024-09-01"}

The response body is not interpreted; any 2xx is success. Transport
failures, non-2xx statuses and an unset NOTIFY_URL raise NotifyError.

One call per passing location per run. There is no retry, deduplication
or rate limiting here: a second trigger on the same day sends the same
alert again.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from floodwatch.alerts.models import AlertPayload
from floodwatch.core.config import Settings
from floodwatch.core.errors import NotifyError

logger = logging.getLogger(__name__)


class Notifier:
    """Posts alert payloads to the notification service."""

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.url = settings.NOTIFY_URL
        self._timeout = settings.HTTP_TIMEOUT_SECONDS
        self._http_client = http_client
        self._owns_client = http_client is None

    async def _get_client(self, location: str) -> httpx.AsyncClient:
        if not self._owns_client:
            if self._http_client.is_closed:
                raise NotifyError("HTTP client is closed", location=location)
            return self._http_client
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def close(self) -> None:
        if self._owns_client and self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def send(self, payload: AlertPayload) -> None:
        """
        Deliver one alert.

        Raises:
            NotifyError: if NOTIFY_URL is unset or the call does not succeed.
        """
        if not self.url:
            raise NotifyError("NOTIFY_URL is not configured", location=payload.location)

        client = await self._get_client(payload.location)
        try:
            response = await client.post(
                self.url, json=payload.model_dump(), timeout=self._timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NotifyError(
                f"HTTP {e.response.status_code}",
                status=e.response.status_code, location=payload.location,
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise NotifyError(f"{type(e).__name__}: {e}", location=payload.location) from e

        logger.debug("Notification accepted for %s (HTTP %d)", payload.location, response.status_code)
