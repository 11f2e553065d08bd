"""
services/case_store.py

Typed read/update surface over the case tables. Every SQLAlchemy failure is
rolled back and re-raised as StoreError so callers can skip the affected case
and leave its latch unset for the next eligible tick.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Iterable

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from trial_scheduler.db.models import (
    REMINDER_LATCH_COLUMNS,
    AdminApprovalStatus,
    Admin,
    AttorneyStatus,
    Case,
    Juror,
    JurorApplication,
    JurorApplicationStatus,
    advance_status,
)
from trial_scheduler.utils.exceptions import StoreError


class CaseStore:
    # ── Queries ──────────────────────────────────────────────────────────────

    def _eligible(self, db: Session):
        return (
            db.query(Case)
            .options(joinedload(Case.attorney))
            .filter(
                Case.admin_approval_status == AdminApprovalStatus.approved,
                Case.is_deleted == False,  # noqa: E712
            )
        )

    def find_cases_awaiting_access(self, db: Session, date_from: date, date_to: date) -> list[Case]:
        """Approved awaiting_trial cases scheduled within [date_from, date_to]."""
        try:
            return (
                self._eligible(db)
                .filter(
                    Case.attorney_status == AttorneyStatus.awaiting_trial,
                    Case.scheduled_date >= date_from,
                    Case.scheduled_date <= date_to,
                )
                .order_by(Case.scheduled_date, Case.scheduled_time, Case.id)
                .all()
            )
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError("find_cases_awaiting_access", str(e)) from e

    def find_cases_pending_notification(self, db: Session, date_from: date, date_to: date) -> list[Case]:
        """Approved join_trial cases whose start notification has not gone out."""
        try:
            return (
                self._eligible(db)
                .filter(
                    Case.attorney_status == AttorneyStatus.join_trial,
                    Case.notifications_sent == False,  # noqa: E712
                    Case.scheduled_date >= date_from,
                    Case.scheduled_date <= date_to,
                )
                .order_by(Case.scheduled_date, Case.scheduled_time, Case.id)
                .all()
            )
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError("find_cases_pending_notification", str(e)) from e

    def find_cases_for_reminder(
        self,
        db: Session,
        trial_date: date,
        statuses: Iterable[AttorneyStatus],
    ) -> list[Case]:
        """Approved cases in one of `statuses` scheduled on `trial_date`."""
        try:
            return (
                self._eligible(db)
                .filter(
                    Case.attorney_status.in_(list(statuses)),
                    Case.scheduled_date == trial_date,
                )
                .order_by(Case.scheduled_time, Case.id)
                .all()
            )
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError("find_cases_for_reminder", str(e)) from e

    def get_approved_jurors(self, db: Session, case_id: int) -> list[Juror]:
        try:
            return (
                db.query(Juror)
                .join(JurorApplication, JurorApplication.juror_id == Juror.id)
                .filter(
                    JurorApplication.case_id == case_id,
                    JurorApplication.status == JurorApplicationStatus.approved,
                )
                .order_by(Juror.id)
                .all()
            )
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError("get_approved_jurors", str(e)) from e

    def get_active_admins(self, db: Session) -> list[Admin]:
        try:
            return (
                db.query(Admin)
                .filter(Admin.is_active == True)  # noqa: E712
                .order_by(Admin.id)
                .all()
            )
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError("get_active_admins", str(e)) from e

    # ── Updates ──────────────────────────────────────────────────────────────

    def mark_join_trial(self, db: Session, case: Case, now: datetime) -> None:
        """Move one case to join_trial. Illegal moves raise before any write."""
        new_status = advance_status(case.attorney_status, AttorneyStatus.join_trial)
        try:
            case.attorney_status = new_status
            case.updated_at = now
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError("mark_join_trial", str(e)) from e

    def mark_notifications_sent(self, db: Session, case_id: int, now: datetime) -> bool:
        return self._set_latch(db, case_id, "notifications_sent", now)

    def mark_reminder_sent(self, db: Session, case_id: int, days_before: int, now: datetime) -> bool:
        column = REMINDER_LATCH_COLUMNS.get(days_before)
        if column is None:
            raise ValueError(f"No reminder latch for {days_before} days")
        return self._set_latch(db, case_id, column, now)

    def _set_latch(self, db: Session, case_id: int, column: str, now: datetime) -> bool:
        """
        Flip a latch false -> true. Returns False when it was already set.
        """
        latch = getattr(Case, column)
        try:
            result = db.execute(
                update(Case)
                .where(Case.id == case_id, latch == False)  # noqa: E712
                .values({column: True, "updated_at": now})
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError(f"set {column}", str(e)) from e
        return bool(result.rowcount)


case_store = CaseStore()
