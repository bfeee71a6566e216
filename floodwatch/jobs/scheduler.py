"""
scheduler.py — Owner of the two periodic triggers.

    Job ID            Trigger                          Action
    ──────────        ───────                          ──────
    daily-flood-check cron DAILY_CHECK_HOUR:MINUTE     BatchOrchestrator.run()
                      in FORECAST_TIMEZONE
    keep-alive        every KEEP_ALIVE_INTERVAL_MINUTES keep_alive.ping()

Both jobs run on an APScheduler AsyncIOScheduler created by this object,
started by the application lifespan and shut down with it. The jobs share
no state.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from floodwatch.core.config import Settings
from floodwatch.jobs import keep_alive
from floodwatch.jobs.orchestrator import BatchOrchestrator

logger = logging.getLogger(__name__)

DAILY_CHECK_JOB_ID = "daily-flood-check"
KEEP_ALIVE_JOB_ID = "keep-alive"


class FloodCheckScheduler:
    """Schedules the daily batch run and the keep-alive ping."""

    def __init__(
        self,
        settings: Settings,
        orchestrator: BatchOrchestrator,
        http_client: httpx.AsyncClient,
    ):
        self.settings = settings
        self.orchestrator = orchestrator
        self.http_client = http_client
        self._running = False

        self.scheduler = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            executors={"default": AsyncIOExecutor()},
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 3600,
            },
            timezone=settings.FORECAST_TIMEZONE,
        )
        self._register_jobs()

    def _register_jobs(self) -> None:
        s = self.settings
        self.scheduler.add_job(
            self.orchestrator.run,
            trigger=CronTrigger(
                hour=s.DAILY_CHECK_HOUR,
                minute=s.DAILY_CHECK_MINUTE,
                timezone=s.FORECAST_TIMEZONE,
            ),
            id=DAILY_CHECK_JOB_ID,
            name="Daily flood check",
            replace_existing=True,
        )
        self.scheduler.add_job(
            keep_alive.ping,
            trigger=IntervalTrigger(minutes=s.KEEP_ALIVE_INTERVAL_MINUTES),
            args=[self.http_client, s.keep_alive_target],
            id=KEEP_ALIVE_JOB_ID,
            name="Keep-alive ping",
            replace_existing=True,
        )

    @property
    def is_running(self) -> bool:
        # AsyncIOScheduler.shutdown() only queues the stop onto the loop, so
        # scheduler.running can still read True right after it returns.
        return self._running

    def start(self) -> None:
        """Start both triggers. Must be called from inside the running event loop."""
        if self._running:
            return
        self.scheduler.start()
        self._running = True
        logger.info(
            "Scheduler started: daily check at %02d:%02d %s, keep-alive every %d min → %s",
            self.settings.DAILY_CHECK_HOUR, self.settings.DAILY_CHECK_MINUTE,
            self.settings.FORECAST_TIMEZONE, self.settings.KEEP_ALIVE_INTERVAL_MINUTES,
            self.settings.keep_alive_target,
        )

    async def stop(self) -> None:
        """Stop the triggers. A run already in progress is left to the orchestrator."""
        if not self._running:
            return
        self._running = False
        self.scheduler.shutdown(wait=False)
        # let the queued shutdown callback run before returning
        await asyncio.sleep(0)
        logger.info("Scheduler stopped")

    def next_run_times(self) -> Dict[str, Optional[datetime]]:
        """Next fire time per job (None while paused or stopped)."""
        return {
            job.id: getattr(job, "next_run_time", None)
            for job in self.scheduler.get_jobs()
        }

    def get_status(self) -> Dict[str, Any]:
        jobs: List[Dict[str, Any]] = []
        for job_id, next_run in self.next_run_times().items():
            jobs.append({
                "id": job_id,
                "next_run_time": next_run.isoformat() if next_run else None,
            })
        return {"running": self.is_running, "jobs": jobs}
