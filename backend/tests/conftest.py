"""
Pytest configuration and shared fixtures for the trial scheduler tests.
"""
import asyncio
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from trial_scheduler.db import models  # noqa: F401  (registers tables)
from trial_scheduler.db.database import Base
from trial_scheduler.db.models import (
    AdminApprovalStatus,
    Admin,
    Attorney,
    AttorneyStatus,
    Case,
    Juror,
    JurorApplication,
    JurorApplicationStatus,
)
from trial_scheduler.services.case_store import CaseStore
from trial_scheduler.services.fanout_service import FanoutNotifier
from trial_scheduler.services.notification_service import NotificationService

# Monday 2025-03-03 15:00 UTC
FIXED_NOW = datetime(2025, 3, 3, 15, 0, 0, tzinfo=timezone.utc)


def local_slot(now: datetime, offset_minutes: int, minutes_ahead: int) -> tuple[date, time]:
    """(scheduled_date, scheduled_time) that is `minutes_ahead` from local now."""
    naive = now.astimezone(timezone.utc).replace(tzinfo=None)
    start = naive + timedelta(minutes=offset_minutes + minutes_ahead)
    return start.date(), start.time()


class RecordingEmailSender:
    """In-memory stand-in for EmailService"""

    def __init__(self, fail_for=(), raise_for=(), gate: Optional[asyncio.Event] = None):
        self.sent: list[tuple[str, str]] = []
        self.attempts: list[str] = []
        self.fail_for = {a.lower() for a in fail_for}
        self.raise_for = {a.lower() for a in raise_for}
        self.gate = gate
        self.entered = asyncio.Event()

    async def send_notification_email(self, address: str, subject: str, html_body: str) -> bool:
        self.attempts.append(address)
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if address.lower() in self.raise_for:
            raise RuntimeError("smtp exploded")
        if address.lower() in self.fail_for:
            return False
        self.sent.append((address, subject))
        return True

    def subjects_for(self, address: str) -> list[str]:
        return [s for a, s in self.sent if a == address]


# ── Database ──────────────────────────────────────────────────────────────────

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def now():
    """Fixed clock for deterministic ticks"""
    return FIXED_NOW


# ── Factories ─────────────────────────────────────────────────────────────────

@pytest.fixture
def make_attorney(db):
    counter = {"n": 0}

    def _make(state: Optional[str] = "Texas", **overrides) -> Attorney:
        counter["n"] += 1
        n = counter["n"]
        attorney = Attorney(
            first_name=overrides.pop("first_name", "Ada"),
            last_name=overrides.pop("last_name", f"Counsel{n}"),
            email=overrides.pop("email", f"attorney{n}@example.com"),
            law_firm_name=overrides.pop("law_firm_name", "Counsel LLP"),
            state=state,
            **overrides,
        )
        db.add(attorney)
        db.commit()
        return attorney

    return _make


@pytest.fixture
def make_case(db, make_attorney, now):
    def _make(
        minutes_ahead: int = 25,
        offset_minutes: int = -360,
        state: Optional[str] = "Texas",
        attorney: Optional[Attorney] = None,
        **overrides,
    ) -> Case:
        scheduled_date, scheduled_time = local_slot(now, offset_minutes, minutes_ahead)
        attorney = attorney or make_attorney()
        case = Case(
            attorney_id=attorney.id,
            case_title=overrides.pop("case_title", "Smith v. Jones"),
            case_type=overrides.pop("case_type", "Civil"),
            county=overrides.pop("county", "Travis"),
            state=state,
            scheduled_date=overrides.pop("scheduled_date", scheduled_date),
            scheduled_time=overrides.pop("scheduled_time", scheduled_time),
            attorney_status=overrides.pop("attorney_status", AttorneyStatus.awaiting_trial),
            admin_approval_status=overrides.pop("admin_approval_status", AdminApprovalStatus.approved),
            **overrides,
        )
        db.add(case)
        db.commit()
        return case

    return _make


@pytest.fixture
def add_jurors(db):
    counter = {"n": 0}

    def _add(case: Case, approved: int = 2, rejected: int = 0) -> list[Juror]:
        made: list[Juror] = []
        plan = [JurorApplicationStatus.approved] * approved + [JurorApplicationStatus.rejected] * rejected
        for status in plan:
            counter["n"] += 1
            juror = Juror(name=f"Juror {counter['n']}", email=f"juror{counter['n']}@example.com")
            db.add(juror)
            db.flush()
            db.add(JurorApplication(juror_id=juror.id, case_id=case.id, status=status))
            if status == JurorApplicationStatus.approved:
                made.append(juror)
        db.commit()
        return made

    return _add


@pytest.fixture
def add_admins(db):
    def _add(active: int = 1, inactive: int = 0) -> list[Admin]:
        admins: list[Admin] = []
        for i in range(active + inactive):
            admin = Admin(
                first_name="Pat",
                last_name=f"Admin{i}",
                username=f"admin{i}",
                email=f"admin{i}@example.com",
                is_active=i < active,
            )
            db.add(admin)
            if i < active:
                admins.append(admin)
        db.commit()
        return admins

    return _add


# ── Delivery ──────────────────────────────────────────────────────────────────

@pytest.fixture
def email_sender():
    return RecordingEmailSender()


@pytest.fixture
def fanout(email_sender):
    return FanoutNotifier(NotificationService(), email_sender)


@pytest.fixture
def store():
    return CaseStore()
