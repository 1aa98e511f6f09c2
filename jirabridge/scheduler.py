"""Background scheduler for periodic sync"""

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from jirabridge.config import settings
from jirabridge.models import RunDirection
from jirabridge.services.sync_service import SyncService

logger = logging.getLogger(__name__)

JOB_ID = "sync_all_units"


class SyncAlreadyRunning(RuntimeError):
    """A batch is already in progress."""


class SyncScheduler:
    """Runs the batch on an interval and on demand, never two at once"""

    def __init__(self, service_factory: Callable[[], SyncService] = SyncService):
        self.scheduler = BackgroundScheduler()
        self.service_factory = service_factory
        self.last_report: Optional[Dict[str, Any]] = None
        self._lock = threading.Lock()

    def start(self):
        """Start the scheduler"""
        self.scheduler.start()
        logger.info("Sync scheduler started")
        self.schedule(settings.sync_interval_minutes)

    def stop(self):
        """Stop the scheduler"""
        self.scheduler.shutdown()
        logger.info("Sync scheduler stopped")

    def schedule(self, interval_minutes: int):
        self.scheduler.add_job(
            func=self._sync_job,
            trigger=IntervalTrigger(minutes=interval_minutes),
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info(f"Scheduled sync every {interval_minutes} minutes")

    def run_now(
        self,
        since: Optional[datetime] = None,
        direction: RunDirection = RunDirection.BOTH,
    ) -> Dict[str, Any]:
        """Run one batch in the calling thread; raises SyncAlreadyRunning if one is active."""
        if not self._lock.acquire(blocking=False):
            raise SyncAlreadyRunning("A sync run is already in progress")
        try:
            report = self.service_factory().run(since=since, direction=direction)
            self.last_report = report
            return report
        finally:
            self._lock.release()

    def _sync_job(self):
        """Job function for the periodic run"""
        try:
            logger.info("Running scheduled sync")
            report = self.run_now()
            logger.info(f"Scheduled sync completed: {report['status']}")
        except SyncAlreadyRunning:
            logger.info("Skipping scheduled sync: a run is already in progress")
        except Exception as e:
            logger.error(f"Scheduled sync failed: {e}")


# Global scheduler instance
scheduler = SyncScheduler()
