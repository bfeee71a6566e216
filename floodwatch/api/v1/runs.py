"""
Batch run endpoints.

Endpoints:
    GET /api/v1/runs/latest — outcome of the most recent flood check run
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Request

from floodwatch.core.errors import NotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/runs", tags=["runs"])


@router.get("/latest")
async def latest_run(request: Request) -> Dict[str, Any]:
    """Per-location outcomes of the last completed run."""
    orchestrator = request.app.state.orchestrator
    report = orchestrator.last_report
    if report is None:
        raise NotFoundError("Run report", which="latest")
    return report.to_dict()
