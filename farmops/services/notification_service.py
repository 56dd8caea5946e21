"""
Notification Service

Stores in-app notifications for assignees and managers. The UI polls
these; nothing is pushed.
"""

import logging
from typing import List, Optional

from sqlmodel import Session, select

from farmops.models.notification import Notification
from farmops.services.errors import NotFoundError

logger = logging.getLogger(__name__)


class NotificationService:
    """Service to emit and read notifications."""

    def __init__(self, session: Session):
        self.session = session

    def submit(
        self,
        user_id: Optional[int],
        type: str,
        title: str,
        message: str,
        related_id: Optional[int] = None,
        related_type: Optional[str] = "task",
    ) -> Optional[Notification]:
        """Queue a notification; returns None when there is nobody to tell."""
        if user_id is None:
            logger.info(f"No recipient for '{type}' notification about {related_type} {related_id}, skipped")
            return None

        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            related_id=related_id,
            related_type=related_type,
        )
        self.session.add(notification)
        self.session.flush()
        logger.info(f"NOTIFICATION for user {user_id}: {title}")
        return notification

    def list_for_user(self, user_id: int, unread_only: bool = False) -> List[Notification]:
        statement = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            statement = statement.where(Notification.is_read == False)  # noqa: E712
        statement = statement.order_by(Notification.created_at.desc(), Notification.id.desc())
        return list(self.session.exec(statement).all())

    def mark_read(self, notification_id: int) -> Notification:
        notification = self.session.get(Notification, notification_id)
        if notification is None:
            raise NotFoundError("Notification", notification_id)
        notification.is_read = True
        self.session.add(notification)
        self.session.commit()
        self.session.refresh(notification)
        return notification
