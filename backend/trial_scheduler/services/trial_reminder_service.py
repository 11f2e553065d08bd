"""
services/trial_reminder_service.py

Daily countdown reminders (4, 3, 2, 1 days before trial by default).

Offsets are processed farthest to nearest and each offset finishes its whole
batch before the next starts. Every (case, offset) pair has its own latch
column on ``cases``; a set latch means the reminder already went out.
Reminders go to the case attorney and approved jurors, not to admins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from trial_scheduler.core.config import settings
from trial_scheduler.db.models import REMINDER_LATCH_COLUMNS, AttorneyStatus, Case
from trial_scheduler.services.case_store import CaseStore, case_store
from trial_scheduler.services.email_service import email_service
from trial_scheduler.services.fanout_service import FanoutNotifier, Recipient
from trial_scheduler.services.job_guard import BatchReport, ItemResult, isolate
from trial_scheduler.services.notification_service import notification_service
from trial_scheduler.services.time_window import as_naive_utc, calendar_days_until
from trial_scheduler.services.trial_messages import build_reminder_message
from trial_scheduler.utils.exceptions import StoreError

logger = logging.getLogger(__name__)

# war_room and join_trial are the statuses the reminder query has always
# matched; awaiting_trial is the status a case holds between war-room
# submission and trial day, which is exactly the reminder period.
DEFAULT_REMINDER_STATUSES: tuple[AttorneyStatus, ...] = (
    AttorneyStatus.war_room,
    AttorneyStatus.awaiting_trial,
    AttorneyStatus.join_trial,
)


@dataclass
class ReminderReport:
    today: date
    by_offset: dict[int, BatchReport] = field(default_factory=dict)

    def summary(self) -> dict:
        return {
            "today": self.today.isoformat(),
            "offsets": {days: r.summary() for days, r in self.by_offset.items()},
        }


class TrialReminderService:
    """
    Countdown reminders for approved, non-deleted cases.

    Matches war_room, awaiting_trial and join_trial cases; awaiting_trial is
    included on top of the historical {war_room, join_trial} query.
    """

    def __init__(
        self,
        store: CaseStore = case_store,
        fanout: Optional[FanoutNotifier] = None,
        reminder_days: Optional[Iterable[int]] = None,
        statuses: Iterable[AttorneyStatus] = DEFAULT_REMINDER_STATUSES,
    ) -> None:
        days = list(settings.reminder_days_list if reminder_days is None else reminder_days)
        unknown = [d for d in days if d not in REMINDER_LATCH_COLUMNS]
        if unknown:
            raise ValueError(f"No reminder latch for offsets {unknown}; supported: {sorted(REMINDER_LATCH_COLUMNS)}")

        self.store = store
        self.fanout = fanout or FanoutNotifier(notification_service, email_service)
        self.reminder_days = sorted(set(days), reverse=True)
        self.statuses = tuple(statuses)

    async def tick(self, db: Session, now_utc: Optional[datetime] = None) -> ReminderReport:
        now = as_naive_utc(now_utc)
        report = ReminderReport(today=now.date())

        logger.info("[Trial Reminders] Starting daily reminder check for %s", report.today)
        for days_before in self.reminder_days:
            report.by_offset[days_before] = await self.send_reminders_for_offset(db, days_before, now)

        logger.info("[Trial Reminders] Daily reminder check completed: %s", report.summary())
        return report

    async def send_reminders_for_offset(self, db: Session, days_before: int, now: datetime) -> BatchReport:
        report = BatchReport(label=f"reminder_{days_before}d")
        trial_date = now.date() + timedelta(days=days_before)

        try:
            cases = self.store.find_cases_for_reminder(db, trial_date, self.statuses)
        except StoreError as e:
            logger.error("Reminder query failed for %d days before trial: %s", days_before, e)
            report.add(ItemResult(key=f"query:{trial_date}", ok=False, error=str(e)))
            return report

        if not cases:
            logger.info("No cases found %d days before trial", days_before)
            return report

        logger.info("Found %d case(s) %d days before trial", len(cases), days_before)
        today = now.date()
        for case in cases:
            case_id = case.id
            # Earlier commits in this batch expire the row, so this reads the current date
            if calendar_days_until(case.scheduled_date, today) != days_before:
                report.skip(case_id, "rescheduled")
                logger.info("Case %s was rescheduled, skipping %d-day reminder", case_id, days_before)
                continue
            if case.reminder_sent(days_before):
                report.skip(case_id, "already sent")
                logger.info("Reminder already sent for case %s (%d days)", case_id, days_before)
                continue
            report.add(await isolate(report.label, case_id, self._remind_case, db, case, days_before, now))
        return report

    async def _remind_case(self, db: Session, case: Case, days_before: int, now: datetime) -> None:
        case_id = case.id
        jurors = self.store.get_approved_jurors(db, case_id)
        attorney = case.attorney

        recipients: list[Recipient] = []
        if attorney is not None:
            recipients.append(Recipient.from_attorney(attorney))
        recipients.extend(Recipient.from_juror(j) for j in jurors)
        juror_count = len(jurors)

        logger.info("Sending %d-day reminder for case %s", days_before, case_id)
        fanout_report = await self.fanout.fan_out(
            db,
            case_id,
            recipients,
            lambda r: build_reminder_message(case, r, days_before, juror_count),
            label=f"reminder_{days_before}d",
        )

        if self.store.mark_reminder_sent(db, case_id, days_before, now):
            logger.info(
                "%d-day reminder sent and marked for case %s (%d delivered, %d missed)",
                days_before, case_id, len(fanout_report.succeeded), len(fanout_report.failed),
            )


trial_reminder_service = TrialReminderService()
