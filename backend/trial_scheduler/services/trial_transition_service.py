"""
services/trial_transition_service.py

Opens trial access and sends the start-of-trial notifications.

One tick runs two passes against a fixed clock:

  1. Open access: approved ``awaiting_trial`` cases whose local start is
     0..ACCESS_WINDOW_MINUTES away move to ``join_trial``. The status change
     is what keeps a case from ever matching this pass again.

  2. Notify: approved ``join_trial`` cases with ``notifications_sent``
     unset and a start between -GRACE_WINDOW_MINUTES and
     NOTIFY_WINDOW_MINUTES fan out to approved jurors, the case attorney and
     active admins. ``notifications_sent`` is set only after the whole
     audience was attempted; delivery itself is best-effort.

Every case is processed in isolation: one failure is logged and the batch
moves on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from trial_scheduler.core.config import settings
from trial_scheduler.db.models import Case
from trial_scheduler.services.case_store import CaseStore, case_store
from trial_scheduler.services.email_service import email_service
from trial_scheduler.services.fanout_service import FanoutNotifier, Recipient
from trial_scheduler.services.job_guard import BatchReport, ItemResult, isolate
from trial_scheduler.services.notification_service import notification_service
from trial_scheduler.services.time_window import (
    as_naive_utc,
    candidate_date_range,
    minutes_until_trial,
    within_window,
)
from trial_scheduler.services.trial_messages import build_start_message
from trial_scheduler.utils.exceptions import StoreError

logger = logging.getLogger(__name__)


def jurisdiction_of(case: Case) -> Optional[str]:
    """The case's own jurisdiction label, else the owning attorney's."""
    if case.state:
        return case.state
    return case.attorney.state if case.attorney is not None else None


def case_minutes_until_trial(case: Case, now_utc: datetime) -> int:
    return minutes_until_trial(case.scheduled_date, case.scheduled_time, jurisdiction_of(case), now_utc)


@dataclass
class TransitionReport:
    now: datetime
    access: BatchReport = field(default_factory=lambda: BatchReport(label="open_access"))
    notifications: BatchReport = field(default_factory=lambda: BatchReport(label="start_notifications"))

    def summary(self) -> dict:
        return {
            "now": self.now.isoformat(),
            "access": self.access.summary(),
            "notifications": self.notifications.summary(),
        }


class TrialTransitionService:
    def __init__(
        self,
        store: CaseStore = case_store,
        fanout: Optional[FanoutNotifier] = None,
        access_window_minutes: Optional[int] = None,
        notify_window_minutes: Optional[int] = None,
        grace_window_minutes: Optional[int] = None,
    ) -> None:
        self.store = store
        self.fanout = fanout or FanoutNotifier(notification_service, email_service)
        self.access_window = settings.ACCESS_WINDOW_MINUTES if access_window_minutes is None else access_window_minutes
        self.notify_window = settings.NOTIFY_WINDOW_MINUTES if notify_window_minutes is None else notify_window_minutes
        self.grace_window = settings.GRACE_WINDOW_MINUTES if grace_window_minutes is None else grace_window_minutes

    @property
    def windows(self) -> dict:
        return {
            "access_minutes": self.access_window,
            "notify_minutes": self.notify_window,
            "grace_minutes": self.grace_window,
        }

    async def tick(self, db: Session, now_utc: Optional[datetime] = None) -> TransitionReport:
        now = as_naive_utc(now_utc)
        report = TransitionReport(now=now)

        report.access = await self.open_trial_access(db, now)
        report.notifications = await self.send_start_notifications(db, now)

        logger.info("Trial transition tick done: %s", report.summary())
        return report

    # ========================================================================
    # Pass 1: awaiting_trial -> join_trial
    # ========================================================================

    async def open_trial_access(self, db: Session, now: datetime) -> BatchReport:
        report = BatchReport(label="open_access")
        date_from, date_to = candidate_date_range(now)
        try:
            candidates = self.store.find_cases_awaiting_access(db, date_from, date_to)
        except StoreError as e:
            logger.error("Trial access query failed: %s", e)
            report.add(ItemResult(key="query", ok=False, error=str(e)))
            return report

        due = [
            case for case in candidates
            if within_window(case_minutes_until_trial(case, now), 0, self.access_window)
        ]
        if not due:
            return report

        logger.info("Found %d case(s) ready for trial access", len(due))
        for case in due:
            case_id = case.id
            result = report.add(await isolate("open_access", case_id, self._open_access, db, case, now))
            if result.ok:
                logger.info("Trial access opened for case %s", case_id)
        return report

    async def _open_access(self, db: Session, case: Case, now: datetime) -> None:
        self.store.mark_join_trial(db, case, now)

    # ========================================================================
    # Pass 2: start-of-trial notifications
    # ========================================================================

    async def send_start_notifications(self, db: Session, now: datetime) -> BatchReport:
        report = BatchReport(label="start_notifications")
        date_from, date_to = candidate_date_range(now)
        try:
            candidates = self.store.find_cases_pending_notification(db, date_from, date_to)
        except StoreError as e:
            logger.error("Start notification query failed: %s", e)
            report.add(ItemResult(key="query", ok=False, error=str(e)))
            return report

        due = [
            case for case in candidates
            if within_window(case_minutes_until_trial(case, now), -self.grace_window, self.notify_window)
        ]
        if not due:
            return report

        logger.info("Found %d case(s) ready for start notifications", len(due))
        for case in due:
            report.add(await isolate("start_notifications", case.id, self._notify_case, db, case, now))
        return report

    async def _notify_case(self, db: Session, case: Case, now: datetime) -> None:
        case_id = case.id
        jurors = self.store.get_approved_jurors(db, case_id)
        admins = self.store.get_active_admins(db)
        attorney = case.attorney

        recipients = [Recipient.from_juror(j) for j in jurors]
        if attorney is not None:
            recipients.append(Recipient.from_attorney(attorney))
        else:
            logger.warning("Case %s has no attorney record; notifying jurors and admins only", case_id)
        recipients.extend(Recipient.from_admin(a) for a in admins)

        attorney_name = attorney.full_name if attorney is not None else ""
        juror_count = len(jurors)

        fanout_report = await self.fanout.fan_out(
            db,
            case_id,
            recipients,
            lambda r: build_start_message(case, r, self.notify_window, juror_count, attorney_name),
            label="start_notification",
        )

        # Commit point: never re-notify this case, whatever individual deliveries did
        if self.store.mark_notifications_sent(db, case_id, now):
            logger.info(
                "Start notifications sent for case %s: %d delivered, %d missed",
                case_id, len(fanout_report.succeeded), len(fanout_report.failed),
            )
        else:
            logger.info("Case %s already marked notified by another worker", case_id)


trial_transition_service = TrialTransitionService()
