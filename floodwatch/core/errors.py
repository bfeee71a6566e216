"""
Centralised error handling — exception hierarchy + FastAPI handlers.

The three outbound collaborators each have their own failure type:

    FetchError       — weather API unreachable, non-2xx, or malformed
    PredictionError  — prediction service unreachable, non-2xx, or malformed
    NotifyError      — notification service unreachable or non-2xx

All three are local failures. The batch orchestrator catches them at the
per-location boundary, logs them, and moves on; they never reach the HTTP
layer. The handlers below cover the small HTTP surface only.

Usage:
    from floodwatch.core.errors import FetchError, NotFoundError

    raise FetchError("HTTP 503", url=url)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class FloodWatchError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class NotFoundError(FloodWatchError):
    """Resource not found (404)."""

    def __init__(self, resource: str, **identifiers: Any):
        super().__init__(
            message=f"{resource} not found",
            status_code=404,
            error_code="NOT_FOUND",
            details={"resource": resource, **identifiers},
        )


class ExternalServiceError(FloodWatchError):
    """External API call failed (502)."""

    error_code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, service: str, message: str = "", **details: Any):
        super().__init__(
            message=f"External service '{service}' failed: {message}",
            status_code=502,
            error_code=type(self).error_code,
            details={"service": service, **details},
        )
        self.service = service
        self.reason = message


class FetchError(ExternalServiceError):
    """Weather forecast could not be fetched or parsed."""

    error_code = "FETCH_ERROR"

    def __init__(self, message: str = "", **details: Any):
        super().__init__("open-meteo", message, **details)


class PredictionError(ExternalServiceError):
    """Prediction service call failed or returned an unusable body."""

    error_code = "PREDICTION_ERROR"

    def __init__(self, message: str = "", **details: Any):
        super().__init__("prediction", message, **details)


class NotifyError(ExternalServiceError):
    """Notification could not be delivered."""

    error_code = "NOTIFY_ERROR"

    def __init__(self, message: str = "", **details: Any):
        super().__init__("notification", message, **details)


# ═══════════════════════════════════════════════════════════════════════════
# FastAPI Exception Handlers
# ═══════════════════════════════════════════════════════════════════════════

def _build_error_response(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> JSONResponse:
    """Build a consistent JSON error response."""
    body: Dict[str, Any] = {
        "error": {
            "code": error_code,
            "message": message,
            "status": status_code,
        }
    }
    if details:
        body["error"]["details"] = details
    if request is not None:
        body["error"]["path"] = str(request.url.path)
    return JSONResponse(status_code=status_code, content=body)


def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""

    @app.exception_handler(FloodWatchError)
    async def handle_floodwatch_error(request: Request, exc: FloodWatchError):
        log = logger.warning if exc.status_code < 500 else logger.error
        log("API Error [%s]: %s | details=%s", exc.error_code, exc.message, exc.details)
        return _build_error_response(
            exc.status_code, exc.error_code, exc.message, exc.details, request,
        )
