"""
SQLAlchemy ORM Models

Only the tables the trial scheduler reads or writes are mapped here. Case
creation, approval and juror selection are owned by other services; this
package mutates ``attorney_status`` and the milestone latches on ``cases``
and inserts rows into ``notifications``.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    TIMESTAMP,
)
from sqlalchemy.orm import relationship

from trial_scheduler.db.database import Base
from trial_scheduler.utils.exceptions import IllegalStatusTransition

# ============================================================================
# Enums
# ============================================================================

class AttorneyStatus(str, enum.Enum):
    """Attorney-facing case lifecycle"""
    pending = "pending"
    war_room = "war_room"
    awaiting_trial = "awaiting_trial"
    join_trial = "join_trial"
    view_details = "view_details"
    completed = "completed"
    cancelled = "cancelled"


class AdminApprovalStatus(str, enum.Enum):
    """Admin approval of a submitted case"""
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class JurorApplicationStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class RecipientType(str, enum.Enum):
    juror = "juror"
    attorney = "attorney"
    admin = "admin"


class NotificationCategory(str, enum.Enum):
    trial_starting = "trial_starting"
    trial_started = "trial_started"
    trial_reminder = "trial_reminder"


# Forward-only lifecycle; anything not listed is illegal.
ATTORNEY_STATUS_TRANSITIONS: dict[AttorneyStatus, frozenset[AttorneyStatus]] = {
    AttorneyStatus.pending: frozenset({AttorneyStatus.war_room, AttorneyStatus.cancelled}),
    AttorneyStatus.war_room: frozenset({
        AttorneyStatus.awaiting_trial,
        AttorneyStatus.join_trial,
        AttorneyStatus.cancelled,
    }),
    AttorneyStatus.awaiting_trial: frozenset({AttorneyStatus.join_trial, AttorneyStatus.cancelled}),
    AttorneyStatus.join_trial: frozenset({AttorneyStatus.view_details, AttorneyStatus.completed}),
    AttorneyStatus.view_details: frozenset({AttorneyStatus.completed}),
    AttorneyStatus.completed: frozenset(),
    AttorneyStatus.cancelled: frozenset(),
}


def can_transition(current: AttorneyStatus, target: AttorneyStatus) -> bool:
    return target in ATTORNEY_STATUS_TRANSITIONS[AttorneyStatus(current)]


def advance_status(current: AttorneyStatus, target: AttorneyStatus) -> AttorneyStatus:
    """
    Validate a lifecycle move and return the new status.

    Raises IllegalStatusTransition for anything that is not a listed
    forward transition (including a no-op move to the same status).
    """
    current = AttorneyStatus(current)
    target = AttorneyStatus(target)
    if not can_transition(current, target):
        raise IllegalStatusTransition(current.value, target.value)
    return target


# Reminder offset (days before trial) -> latch column on Case
REMINDER_LATCH_COLUMNS: dict[int, str] = {
    4: "reminder_4_days",
    3: "reminder_3_days",
    2: "reminder_2_days",
    1: "reminder_1_day",
}


# ============================================================================
# Models
# ============================================================================

class Attorney(Base):
    """Attorney that owns a case"""
    __tablename__ = "attorneys"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    law_firm_name = Column(String(255), nullable=True)
    # Jurisdiction label used for the UTC offset lookup
    state = Column(String(100), nullable=True)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)

    cases = relationship("Case", back_populates="attorney")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Case(Base):
    """Scheduled trial case"""
    __tablename__ = "cases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    attorney_id = Column(Integer, ForeignKey("attorneys.id", ondelete="CASCADE"), nullable=False, index=True)

    case_title = Column(String(500), nullable=False)
    case_type = Column(String(50), nullable=True)
    county = Column(String(100), nullable=True)
    # Jurisdiction label (free text)
    state = Column(String(100), nullable=True)

    # Jurisdiction-local wall clock, no zone
    scheduled_date = Column(Date, nullable=False, index=True)
    scheduled_time = Column(Time, nullable=False)

    attorney_status = Column(SQLEnum(AttorneyStatus), nullable=False, default=AttorneyStatus.pending, index=True)
    admin_approval_status = Column(
        SQLEnum(AdminApprovalStatus), nullable=False, default=AdminApprovalStatus.pending, index=True
    )

    # Milestone latches (false -> true only)
    notifications_sent = Column(Boolean, nullable=False, default=False, server_default="0")
    reminder_4_days = Column(Boolean, nullable=False, default=False, server_default="0")
    reminder_3_days = Column(Boolean, nullable=False, default=False, server_default="0")
    reminder_2_days = Column(Boolean, nullable=False, default=False, server_default="0")
    reminder_1_day = Column(Boolean, nullable=False, default=False, server_default="0")

    is_deleted = Column(Boolean, nullable=False, default=False, server_default="0")

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    attorney = relationship("Attorney", back_populates="cases")
    juror_applications = relationship("JurorApplication", back_populates="case", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_cases_status_approval_date", "attorney_status", "admin_approval_status", "scheduled_date"),
    )

    def reminder_sent(self, days_before: int) -> bool:
        return bool(getattr(self, REMINDER_LATCH_COLUMNS[days_before]))


class Juror(Base):
    __tablename__ = "jurors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)

    applications = relationship("JurorApplication", back_populates="juror")


class JurorApplication(Base):
    """Links a juror to a case; only approved applications form the audience"""
    __tablename__ = "juror_applications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    juror_id = Column(Integer, ForeignKey("jurors.id", ondelete="CASCADE"), nullable=False, index=True)
    case_id = Column(Integer, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(
        SQLEnum(JurorApplicationStatus), nullable=False, default=JurorApplicationStatus.pending, index=True
    )
    applied_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)

    juror = relationship("Juror", back_populates="applications")
    case = relationship("Case", back_populates="juror_applications")


class Admin(Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    username = Column(String(100), nullable=True)
    email = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, server_default="1")

    @property
    def display_name(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.username or "Admin"


class Notification(Base):
    """In-app notification row"""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    user_type = Column(SQLEnum(RecipientType), nullable=False)
    case_id = Column(Integer, ForeignKey("cases.id", ondelete="SET NULL"), nullable=True, index=True)
    type = Column(SQLEnum(NotificationCategory), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False, server_default="0")
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_notifications_user", "user_type", "user_id"),
    )
