"""
services/fanout_service.py

Dispatch one message category to a resolved recipient list. Each recipient
gets one in-app notification and one email; a failure for one recipient is
logged and recorded and never blocks the rest.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from sqlalchemy.orm import Session

from trial_scheduler.db.models import Admin, Attorney, Juror, NotificationCategory, RecipientType
from trial_scheduler.services.job_guard import BatchReport, isolate
from trial_scheduler.services.notification_service import NotificationPayload
from trial_scheduler.utils.exceptions import DeliveryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recipient:
    id: int
    type: RecipientType
    name: str
    email: str

    @property
    def key(self) -> str:
        return f"{self.type.value}:{self.id}"

    @classmethod
    def from_juror(cls, juror: Juror) -> "Recipient":
        return cls(id=juror.id, type=RecipientType.juror, name=juror.name, email=juror.email)

    @classmethod
    def from_attorney(cls, attorney: Attorney) -> "Recipient":
        return cls(id=attorney.id, type=RecipientType.attorney, name=attorney.full_name, email=attorney.email)

    @classmethod
    def from_admin(cls, admin: Admin) -> "Recipient":
        return cls(id=admin.id, type=RecipientType.admin, name=admin.display_name, email=admin.email)


@dataclass(frozen=True)
class OutboundMessage:
    category: NotificationCategory
    title: str
    message: str
    subject: str
    html_body: str


class NotificationWriter(Protocol):
    def create_notification(self, db: Session, payload: NotificationPayload) -> bool: ...


class EmailSender(Protocol):
    async def send_notification_email(self, address: str, subject: str, html_body: str) -> bool: ...


MessageBuilder = Callable[[Recipient], OutboundMessage]


class FanoutNotifier:
    def __init__(self, notifications: NotificationWriter, emails: EmailSender) -> None:
        self.notifications = notifications
        self.emails = emails

    async def fan_out(
        self,
        db: Session,
        case_id: Optional[int],
        recipients: list[Recipient],
        build: MessageBuilder,
        label: str = "fan_out",
    ) -> BatchReport:
        report = BatchReport(label=label)
        for recipient in recipients:
            report.add(await isolate(label, recipient.key, self._deliver, db, case_id, recipient, build))

        if report.failed:
            logger.warning(
                "%s case=%s: %d/%d recipients missed this cycle: %s",
                label, case_id, len(report.failed), len(recipients), report.failed,
            )
        else:
            logger.info("%s case=%s: notified %d recipients", label, case_id, len(recipients))
        return report

    async def _deliver(
        self,
        db: Session,
        case_id: Optional[int],
        recipient: Recipient,
        build: MessageBuilder,
    ) -> None:
        message = build(recipient)
        missed: list[str] = []

        written = self.notifications.create_notification(
            db,
            NotificationPayload(
                recipient_id=recipient.id,
                recipient_type=recipient.type,
                case_id=case_id,
                category=message.category,
                title=message.title,
                message=message.message,
            ),
        )
        if not written:
            missed.append("notification")

        sent = await self.emails.send_notification_email(recipient.email, message.subject, message.html_body)
        if not sent:
            missed.append("email")

        if missed:
            raise DeliveryError(recipient.key, missed)
