"""Notification router."""
from fastapi import APIRouter, Depends, Query
from typing import List

from farmops.db.config import get_session
from farmops.schemas.task import NotificationResponse
from farmops.services.notification_service import NotificationService
from sqlmodel import Session

router = APIRouter(tags=["Notifications"])


def get_notification_service(session: Session = Depends(get_session)) -> NotificationService:
    return NotificationService(session)


@router.get("/notifications/{user_id}", response_model=List[NotificationResponse])
async def list_notifications(
    user_id: int,
    unread_only: bool = Query(False),
    service: NotificationService = Depends(get_notification_service),
):
    """Notifications for one user, newest first."""
    return [NotificationResponse.model_validate(n) for n in service.list_for_user(user_id, unread_only)]


@router.patch("/notifications/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: int,
    service: NotificationService = Depends(get_notification_service),
):
    return NotificationResponse.model_validate(service.mark_read(notification_id))
