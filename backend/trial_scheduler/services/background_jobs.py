"""
services/background_jobs.py

Scheduled background jobs for the trial lifecycle.

Jobs:
  1. trial_transition
     - Opens trial access for cases about to start and sends the
       start-of-trial notifications.
     - Runs immediately on start, then every SCHEDULER_INTERVAL_SECONDS.

  2. trial_reminders
     - Sends the 4/3/2/1-day countdown reminders.
     - Runs once a day at REMINDER_CHECK_HOUR (SCHEDULER_TIMEZONE). When the
       process starts after today's hour has passed, the first run is
       tomorrow's.

Setup (APScheduler, add to your FastAPI app startup):

    from trial_scheduler.services.background_jobs import start_scheduler, shutdown_scheduler
    from contextlib import asynccontextmanager

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        start_scheduler()
        yield
        shutdown_scheduler()

    app = FastAPI(lifespan=lifespan)
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Optional
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from trial_scheduler.core.config import settings
from trial_scheduler.db.database import SessionLocal
from trial_scheduler.services.job_guard import JobGuard
from trial_scheduler.services.trial_reminder_service import TrialReminderService, trial_reminder_service
from trial_scheduler.services.trial_transition_service import TrialTransitionService, trial_transition_service

logger = logging.getLogger(__name__)

TRANSITION_JOB_ID = "trial_transition"
REMINDER_JOB_ID = "trial_reminders"
REMINDER_INTERVAL = timedelta(hours=24)


def next_daily_anchor(now: datetime, hour: int) -> datetime:
    """
    Next occurrence of `hour`:00 at or after `now` (same tzinfo as `now`).
    If today's anchor has already passed, tomorrow's.
    """
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if target < now:
        target = target + timedelta(days=1)
    return target


class TrialJobRunner:
    """
    Owns the APScheduler instance, one overlap guard per job, and the two
    services it drives. tick logic stays in the services; this class only
    wires clocks, sessions and timers.
    """

    def __init__(
        self,
        transition: TrialTransitionService = trial_transition_service,
        reminders: TrialReminderService = trial_reminder_service,
        session_factory: Callable[[], Session] = SessionLocal,
        interval_seconds: Optional[int] = None,
        reminder_check_hour: Optional[int] = None,
        tz: Optional[str] = None,
    ) -> None:
        self.transition = transition
        self.reminders = reminders
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds or settings.SCHEDULER_INTERVAL_SECONDS
        self.reminder_check_hour = (
            settings.REMINDER_CHECK_HOUR if reminder_check_hour is None else reminder_check_hour
        )
        self.tz = ZoneInfo(tz or settings.SCHEDULER_TIMEZONE)

        self.transition_guard = JobGuard(TRANSITION_JOB_ID)
        self.reminder_guard = JobGuard(REMINDER_JOB_ID)
        self.last_runs: dict[str, dict[str, Any]] = {}
        self._scheduler: Optional[AsyncIOScheduler] = None

    # ========================================================================
    # Control surface
    # ========================================================================

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """
        Register both jobs and start the scheduler.
        Must be called from inside a running event loop.
        """
        if self.running:
            logger.warning("Trial scheduler already running")
            return

        scheduler = AsyncIOScheduler(timezone=self.tz)
        now = datetime.now(self.tz)

        if settings.TRIAL_SCHEDULER_ENABLED:
            scheduler.add_job(
                self.run_transition_tick,
                trigger=IntervalTrigger(seconds=self.interval_seconds, timezone=self.tz),
                id=TRANSITION_JOB_ID,
                name="Open trial access and send start notifications",
                next_run_time=now,        # run immediately on start
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=self.interval_seconds,
            )
        else:
            logger.info("Trial transition job disabled")

        if settings.TRIAL_REMINDERS_ENABLED:
            first_run = next_daily_anchor(now, self.reminder_check_hour)
            scheduler.add_job(
                self.run_reminder_tick,
                trigger=IntervalTrigger(
                    seconds=int(REMINDER_INTERVAL.total_seconds()),
                    start_date=first_run,
                    timezone=self.tz,
                ),
                id=REMINDER_JOB_ID,
                name="Send trial countdown reminders",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=3600,
            )
            logger.info(
                "Trial reminders: next check in %.0f minutes at %s",
                (first_run - now).total_seconds() / 60, first_run.isoformat(),
            )
        else:
            logger.info("Trial reminder job disabled")

        scheduler.start()
        self._scheduler = scheduler
        logger.info(
            "Trial scheduler started: interval=%ss windows=%s reminder_days=%s check_hour=%02d:00 %s",
            self.interval_seconds, self.transition.windows, self.reminders.reminder_days,
            self.reminder_check_hour, self.tz.key,
        )

    def stop(self) -> None:
        """Shut the scheduler down without waiting for in-flight ticks."""
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Trial scheduler stopped")
        self._scheduler = None

    def status(self) -> dict:
        next_runs: dict[str, Optional[str]] = {}
        if self._scheduler is not None:
            for job in self._scheduler.get_jobs():
                next_runs[job.id] = job.next_run_time.isoformat() if job.next_run_time else None

        return {
            "running": self.running,
            "currently_processing": {
                TRANSITION_JOB_ID: self.transition_guard.busy,
                REMINDER_JOB_ID: self.reminder_guard.busy,
            },
            "configured_windows": self.transition.windows,
            "configured_offsets": list(self.reminders.reminder_days),
            "interval_seconds": self.interval_seconds,
            "reminder_check_hour": self.reminder_check_hour,
            "timezone": self.tz.key,
            "next_run_times": next_runs,
            "last_runs": dict(self.last_runs),
        }

    # ========================================================================
    # Guarded ticks
    # ========================================================================

    async def run_transition_tick(self, now: Optional[datetime] = None):
        """One guarded transition tick. Returns the report, or None when skipped or failed."""
        return await self._run_guarded(TRANSITION_JOB_ID, self.transition_guard, self.transition.tick, now)

    async def run_reminder_tick(self, now: Optional[datetime] = None):
        """One guarded reminder run. Returns the report, or None when skipped or failed."""
        return await self._run_guarded(REMINDER_JOB_ID, self.reminder_guard, self.reminders.tick, now)

    async def trigger_reminders_now(self):
        logger.info("Manually triggering reminder check")
        return await self.run_reminder_tick()

    async def _run_guarded(
        self,
        job_id: str,
        guard: JobGuard,
        tick: Callable[[Session, Optional[datetime]], Awaitable[Any]],
        now: Optional[datetime],
    ):
        async with guard.admit() as admitted:
            if not admitted:
                self._record(job_id, "skipped")
                return None

            started = datetime.utcnow()
            db = self.session_factory()
            try:
                report = await tick(db, now)
                self._record(job_id, "success", started)
                return report
            except Exception as e:
                logger.exception("Job: %s failed: %s", job_id, e)
                self._record(job_id, "failed", started, error=f"{type(e).__name__}: {e}")
                return None
            finally:
                db.close()

    def _record(
        self,
        job_id: str,
        outcome: str,
        started: Optional[datetime] = None,
        error: Optional[str] = None,
    ) -> None:
        finished = datetime.utcnow()
        self.last_runs[job_id] = {
            "outcome": outcome,
            "started_at": (started or finished).isoformat(),
            "finished_at": finished.isoformat(),
            "error": error,
        }


# ── Scheduler singleton ───────────────────────────────────────────────────────
job_runner = TrialJobRunner()


def start_scheduler() -> None:
    """Starts the trial scheduler. Call this from FastAPI lifespan startup."""
    job_runner.start()


def shutdown_scheduler() -> None:
    """Gracefully shuts down the scheduler. Call from FastAPI lifespan shutdown."""
    job_runner.stop()
