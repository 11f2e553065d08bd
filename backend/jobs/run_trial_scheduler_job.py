from __future__ import annotations

import argparse
import asyncio
import json
from datetime import datetime, timezone

from trial_scheduler.core.logger import logger
from trial_scheduler.db.database import init_db
from trial_scheduler.services.background_jobs import TrialJobRunner

JOBS = ("transition", "reminders", "all")


def _parse_now_arg(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def run_trial_scheduler_job(job: str, now: datetime | None = None, runner: TrialJobRunner | None = None) -> dict:
    runner = runner or TrialJobRunner()
    summary: dict = {"job": job}

    if job in ("transition", "all"):
        report = await runner.run_transition_tick(now)
        summary["transition"] = report.summary() if report is not None else None

    if job in ("reminders", "all"):
        report = await runner.run_reminder_tick(now)
        summary["reminders"] = report.summary() if report is not None else None

    summary["last_runs"] = runner.last_runs
    logger.info("Trial scheduler job completed: %s", summary)
    return summary


def main() -> None:
    parser = argparse.ArgumentParser(description="Run one trial scheduler tick against the configured database")
    parser.add_argument("--job", choices=JOBS, default="all")
    parser.add_argument("--now", dest="now", help="ISO-8601 instant to use as the clock (default: current UTC)")
    parser.add_argument("--init-db", action="store_true", help="Create missing tables first")
    args = parser.parse_args()

    if args.init_db:
        init_db()

    summary = asyncio.run(run_trial_scheduler_job(args.job, _parse_now_arg(args.now)))
    print(json.dumps(summary, indent=2, default=str))


if __name__ == "__main__":
    main()
