"""
Scheduler Service.

Handles scheduled device polling using APScheduler.
每個 poll cycle 對所有 is_active=True 的設備執行 probe → discover → reconcile → persist。
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings

logger = logging.getLogger(__name__)

POLL_JOB_ID = "poll_devices"


def load_scheduler_config(path: str | Path = "config/scheduler.yaml") -> dict[str, Any]:
    """
    Load poll job settings from YAML.

    格式：
        jobs:
          poll_devices:
            enabled: true
            interval: 300
            initial_delay: 10

    Missing file or section falls back to POLL_INTERVAL_SECONDS.
    """
    config_path = Path(path)
    defaults = {
        "enabled": True,
        "interval": settings.poll_interval_seconds,
        "initial_delay": 0,
    }
    if not config_path.exists():
        logger.warning("%s not found, using default poll interval", config_path)
        return defaults

    with open(config_path, encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    job = (config.get("jobs") or {}).get(POLL_JOB_ID) or {}
    return {**defaults, **job}


class SchedulerService:
    """
    Scheduler for device polling jobs.

    Uses APScheduler to run the poll cycle at the configured interval.
    """

    def __init__(self) -> None:
        """Initialize scheduler."""
        self.scheduler = AsyncIOScheduler(
            job_defaults={
                "max_instances": 1,
                "coalesce": True,
                "misfire_grace_time": 30,
            },
        )
        self._jobs: dict[str, str] = {}  # job_name -> job_id

    def add_poll_job(
        self,
        interval_seconds: int,
        initial_delay: float = 0,
    ) -> str:
        """
        Add the device poll job.

        Args:
            interval_seconds: Poll interval in seconds
            initial_delay: Seconds to delay the first trigger

        Returns:
            str: Job ID
        """
        if POLL_JOB_ID in self._jobs:
            self.remove_job(POLL_JOB_ID)

        trigger_kwargs: dict[str, Any] = {"seconds": interval_seconds}
        if initial_delay > 0:
            trigger_kwargs["start_date"] = (
                datetime.now(timezone.utc) + timedelta(seconds=initial_delay)
            )

        job = self.scheduler.add_job(
            self._run_poll,
            trigger=IntervalTrigger(**trigger_kwargs),
            id=POLL_JOB_ID,
            replace_existing=True,
        )
        self._jobs[POLL_JOB_ID] = job.id
        logger.info("Added poll job every %ds", interval_seconds)
        return job.id

    def remove_job(self, job_name: str) -> bool:
        """Remove a scheduled job."""
        job_id = self._jobs.get(job_name)
        if job_id:
            self.scheduler.remove_job(job_id)
            del self._jobs[job_name]
            logger.info("Removed job '%s'", job_name)
            return True
        return False

    def get_jobs(self) -> list[dict[str, Any]]:
        """Get list of all scheduled jobs."""
        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run": str(getattr(job, "next_run_time", None)),
                "trigger": str(job.trigger),
            }
            for job in self.scheduler.get_jobs()
        ]

    # ── Internal ─────────────────────────────────────────────────

    async def _run_poll(self) -> None:
        """Run one poll cycle over every active device."""
        from app.snmp.polling_service import get_polling_service

        try:
            result = await get_polling_service().poll_all()
            logger.info(
                "Scheduled poll: %d/%d up in %.2fs",
                result["up"], result["total"], result["elapsed"],
            )
        except Exception as e:
            logger.error("Scheduled poll failed: %s", e)
            from app.services.system_log import format_error_detail, write_log
            await write_log(
                level="ERROR",
                source="scheduler",
                summary=f"排程 poll 整體失敗 ({type(e).__name__})",
                detail=format_error_detail(exc=e, operation=POLL_JOB_ID),
                operation=POLL_JOB_ID,
                error=e,
            )

    # ── Lifecycle ────────────────────────────────────────────────

    def start(self) -> None:
        """Start the scheduler."""
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Scheduler started")

    def stop(self) -> None:
        """Stop the scheduler, waiting for running jobs to finish."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
            logger.info("Scheduler stopped")

    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self.scheduler.running


# ── Singleton ────────────────────────────────────────────────────

_scheduler_service: SchedulerService | None = None


def get_scheduler_service() -> SchedulerService:
    """Get or create SchedulerService instance."""
    global _scheduler_service
    if _scheduler_service is None:
        _scheduler_service = SchedulerService()
    return _scheduler_service


async def setup_scheduled_jobs(job_config: dict[str, Any]) -> bool:
    """
    Register the poll job from configuration and start the scheduler.

    Returns:
        False when the job is disabled in scheduler.yaml.
    """
    if not job_config.get("enabled", True):
        logger.info("Poll job disabled in scheduler.yaml")
        return False

    scheduler = get_scheduler_service()
    scheduler.add_poll_job(
        interval_seconds=int(job_config.get("interval", settings.poll_interval_seconds)),
        initial_delay=float(job_config.get("initial_delay", 0)),
    )
    scheduler.start()
    return True
