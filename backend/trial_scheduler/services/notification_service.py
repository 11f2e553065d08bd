"""
In-app notification writer.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from trial_scheduler.db.models import Notification, NotificationCategory, RecipientType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationPayload:
    recipient_id: int
    recipient_type: RecipientType
    case_id: Optional[int]
    category: NotificationCategory
    title: str
    message: str


class NotificationService:
    def create_notification(self, db: Session, payload: NotificationPayload) -> bool:
        """Persist one notification. Returns False (and rolls back) on failure."""
        row = Notification(
            user_id=payload.recipient_id,
            user_type=payload.recipient_type,
            case_id=payload.case_id,
            type=payload.category,
            title=payload.title[:255],
            message=payload.message,
            is_read=False,
            created_at=datetime.utcnow(),
        )
        try:
            db.add(row)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(
                "Notification write failed recipient=%s:%s case=%s: %s",
                payload.recipient_type.value, payload.recipient_id, payload.case_id, e,
            )
            return False
        return True


notification_service = NotificationService()
