"""
api/v1/endpoints/scheduler.py

Operational control surface for the trial scheduler.

Endpoints:
  GET    /api/v1/scheduler/status            : running flag, busy flags, windows, offsets
  POST   /api/v1/scheduler/transition/run    : run one transition tick now
  POST   /api/v1/scheduler/reminders/run     : run the daily reminder check now
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from trial_scheduler.services.background_jobs import TrialJobRunner, job_runner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scheduler", tags=["scheduler"])


def get_job_runner() -> TrialJobRunner:
    return job_runner


@router.get("/status")
def scheduler_status(runner: TrialJobRunner = Depends(get_job_runner)):
    return runner.status()


@router.post("/transition/run")
async def run_transition(runner: TrialJobRunner = Depends(get_job_runner)):
    report = await runner.run_transition_tick()
    if report is None:
        return {"skipped": True, "last_run": runner.last_runs.get("trial_transition")}
    return {"skipped": False, "report": report.summary()}


@router.post("/reminders/run")
async def run_reminders(runner: TrialJobRunner = Depends(get_job_runner)):
    report = await runner.trigger_reminders_now()
    if report is None:
        return {"skipped": True, "last_run": runner.last_runs.get("trial_reminders")}
    return {"skipped": False, "report": report.summary()}
