"""Background maintenance scheduler using APScheduler.

Runs once a day at a configurable hour (default 3 AM UTC):
- Expire overdue quests
- Generate the day's (and week's) quests for every user
- Delete old read notifications and notifications past their expiry
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from ..db.repositories.user_repository import UserProgressionRepository
from ..utils.clock import Clock, utc_now
from .notifications import NotificationRouter
from .quests import QuestService

logger = logging.getLogger(__name__)

MAINTENANCE_JOB_ID = "daily_progression_maintenance"
USER_BATCH_SIZE = 500


@dataclass
class MaintenanceResult:
    """Result of one maintenance task."""

    task: str
    affected: int
    success: bool
    error: Optional[str] = None


@dataclass
class MaintenanceReport:
    """Complete report of a maintenance run."""

    timestamp: str
    results: List[MaintenanceResult] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return all(r.success for r in self.results)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "results": [
                {
                    "task": r.task,
                    "affected": r.affected,
                    "success": r.success,
                    "error": r.error,
                }
                for r in self.results
            ],
            "duration_seconds": self.duration_seconds,
        }


class MaintenanceScheduler:
    """Manages the daily maintenance job.

    Usage:
        scheduler = MaintenanceScheduler(quests, router, users)
        scheduler.start()
        # ... service runs ...
        scheduler.stop()
    """

    def __init__(
        self,
        quests: QuestService,
        router: NotificationRouter,
        users: UserProgressionRepository,
        enabled: bool = True,
        hour_utc: int = 3,
        clock: Optional[Clock] = None,
    ):
        self.quests = quests
        self.router = router
        self.users = users
        self.enabled = enabled
        self.hour_utc = hour_utc
        self._clock = clock or utc_now
        self.scheduler: Optional[BackgroundScheduler] = None
        self._last_report: Optional[MaintenanceReport] = None

    @property
    def is_running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    @property
    def last_report(self) -> Optional[MaintenanceReport]:
        return self._last_report

    def start(self) -> None:
        """Start the scheduler with the daily maintenance job."""
        if self.is_running:
            logger.warning("Maintenance scheduler is already running")
            return

        if not self.enabled:
            logger.info("Progression maintenance is disabled in configuration")
            return

        self.scheduler = BackgroundScheduler(timezone="UTC")
        self.scheduler.add_job(
            self.run_maintenance,
            CronTrigger(hour=self.hour_utc, minute=0, timezone="UTC"),
            id=MAINTENANCE_JOB_ID,
            name="Daily Progression Maintenance",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info(f"Maintenance scheduler started (daily at {self.hour_utc}:00 UTC)")

    def stop(self) -> None:
        """Gracefully shut down the scheduler."""
        if self.scheduler is None:
            return

        logger.info("Shutting down maintenance scheduler...")
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
        self.scheduler = None
        logger.info("Maintenance scheduler stopped")

    def get_next_run_time(self) -> Optional[datetime]:
        if not self.is_running:
            return None
        job = self.scheduler.get_job(MAINTENANCE_JOB_ID)
        return job.next_run_time if job else None

    def run_maintenance(self) -> MaintenanceReport:
        """Run every maintenance task; a failing task does not stop the rest."""
        started = time.monotonic()
        now = self._clock()
        report = MaintenanceReport(timestamp=now.isoformat())
        logger.info("Starting progression maintenance")

        report.results.append(self._run_task("expire_quests", lambda: self.quests.expire_overdue(now)))
        report.results.append(self._run_task("generate_quests", lambda: self._generate_quests(now)))
        report.results.append(self._run_task("cleanup_read_notifications", self.router.cleanup_expired))
        report.results.append(self._run_task("purge_expired_notifications", self.router.purge_past_expiry))

        report.duration_seconds = time.monotonic() - started
        self._last_report = report

        failed = [r.task for r in report.results if not r.success]
        if failed:
            logger.warning(f"Maintenance completed with errors, failed tasks: {failed}")
        else:
            logger.info(f"Maintenance completed in {report.duration_seconds:.2f}s")
        return report

    def _generate_quests(self, now: datetime) -> int:
        day = now.date()
        created = 0
        offset = 0
        while True:
            user_ids = self.users.list_user_ids(limit=USER_BATCH_SIZE, offset=offset)
            for user_id in user_ids:
                created += len(self.quests.create_daily_quests(user_id, day))
                created += len(self.quests.create_weekly_quests(user_id, day))
            if len(user_ids) < USER_BATCH_SIZE:
                return created
            offset += USER_BATCH_SIZE

    @staticmethod
    def _run_task(name: str, task: Callable[[], int]) -> MaintenanceResult:
        try:
            return MaintenanceResult(task=name, affected=task(), success=True)
        except Exception as e:
            logger.error(f"Maintenance task {name} failed: {e}")
            return MaintenanceResult(task=name, affected=0, success=False, error=str(e))
