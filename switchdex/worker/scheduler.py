"""APScheduler wiring for recurring and on-demand scan passes."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Set

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from switchdex.config import settings
from switchdex.db.json_store import JsonFileStore
from switchdex.errors import InvalidIntervalError
from switchdex.models import Category
from switchdex.worker.orchestrator import ScanOrchestrator

logger = logging.getLogger(__name__)

SCAN_JOB_ID = "update_scan"


class ScanScheduler:
    """
    Owns the recurring scan job.

    The interval is read from ``config.json`` (``checkIntervalMinutes``) on
    start, falling back to settings, and written back on every reconfigure.
    """

    def __init__(
        self,
        orchestrator: ScanOrchestrator,
        data_dir: Optional[str | Path] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        self.orchestrator = orchestrator
        self.scheduler = scheduler or AsyncIOScheduler()
        self._config = JsonFileStore(Path(data_dir or settings.data_dir) / "config.json")
        self.interval_minutes = self._load_interval()
        self._tasks: Set[asyncio.Task] = set()

    def _load_interval(self) -> int:
        config = self._config.load()
        value = config.get("checkIntervalMinutes") if isinstance(config, dict) else None
        try:
            minutes = int(value) if value is not None else settings.check_interval_minutes
            validate_interval(minutes)
        except (TypeError, ValueError, InvalidIntervalError):
            logger.warning(f"Ignoring invalid stored interval {value!r}")
            minutes = settings.check_interval_minutes
        return minutes

    async def _scheduled_pass(self):
        await self.orchestrator.run_pass(trigger="scheduled")

    def start(self) -> None:
        """Register the interval job and start the scheduler."""
        self.scheduler.add_job(
            self._scheduled_pass,
            IntervalTrigger(minutes=self.interval_minutes),
            id=SCAN_JOB_ID,
            name="Scan tracked entities for updates",
            max_instances=1,  # Prevent overlapping runs
            coalesce=True,
            misfire_grace_time=settings.misfire_grace_seconds,
            replace_existing=True,
        )
        if not self.scheduler.running:
            self.scheduler.start()
        logger.info(f"Scheduler configured: update scan every {self.interval_minutes} minutes")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        for task in list(self._tasks):
            task.cancel()

    def reconfigure(self, minutes: int) -> int:
        """
        Change the scan interval.

        The existing timer is replaced in one step; a pass that is already
        running is left to finish.

        Args:
            minutes: New interval (1-1440)

        Returns:
            The applied interval

        Raises:
            InvalidIntervalError: If minutes is out of range
            PersistenceError: If config.json could not be written
        """
        validate_interval(minutes)

        if self.scheduler.get_job(SCAN_JOB_ID) is not None:
            self.scheduler.reschedule_job(SCAN_JOB_ID, trigger=IntervalTrigger(minutes=minutes))

        previous = self.interval_minutes
        self.interval_minutes = minutes

        config = self._config.load()
        if not isinstance(config, dict):
            config = {}
        config["checkIntervalMinutes"] = minutes
        self._config.save(config)

        logger.info(f"Scan interval changed from {previous} to {minutes} minutes")
        return minutes

    def run_now(self, categories: Optional[Iterable[Category]] = None) -> asyncio.Task:
        """
        Start an on-demand pass in the background.

        If a pass is already running the request is queued by the orchestrator.

        Returns:
            The task running the pass
        """
        cats = list(categories) if categories is not None else None
        task = asyncio.create_task(self.orchestrator.run_pass(trigger="manual", categories=cats))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def next_run_time(self):
        job = self.scheduler.get_job(SCAN_JOB_ID)
        return job.next_run_time if job is not None else None

    def status(self) -> Dict[str, Any]:
        """Running state, interval, next run time and last pass summary."""
        orchestrator = self.orchestrator
        next_run = self.next_run_time()
        last = orchestrator.last_summary
        return {
            "running": orchestrator.is_running,
            "current_category": (
                orchestrator.current_category.value if orchestrator.current_category else None
            ),
            "pending": orchestrator.has_pending,
            "interval_minutes": self.interval_minutes,
            "next_run_time": next_run.isoformat() if next_run else None,
            "last_pass": last.to_dict() if last else None,
        }


def validate_interval(minutes: int) -> None:
    """
    Raises:
        InvalidIntervalError: If minutes is outside the configured bounds
    """
    if isinstance(minutes, bool) or not isinstance(minutes, int):
        raise InvalidIntervalError(f"Interval must be a whole number of minutes, got {minutes!r}")
    if not settings.min_interval_minutes <= minutes <= settings.max_interval_minutes:
        raise InvalidIntervalError(
            f"Interval must be between {settings.min_interval_minutes} and "
            f"{settings.max_interval_minutes} minutes, got {minutes}"
        )
