"""Notification polling endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import require_auth
from ..deps import get_db
from ..services.notifications import NotificationService

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("/pending", response_model=schemas.PendingNotificationList, response_model_by_alias=True)
def get_pending(
    user: models.User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> schemas.PendingNotificationList:
    """
    Drain the caller's undelivered notifications.

    Each notification is returned once; every open tab polls independently.
    """
    pending = NotificationService.drain_pending(db, user.id)
    return schemas.PendingNotificationList(
        notifications=[
            schemas.PendingNotification(
                id=n.id,
                type=n.type,
                message=n.message,
                post_id=n.post_id,
                post_title=n.post_title,
                from_=n.from_name,
                timestamp=n.created_at,
            )
            for n in pending
        ]
    )


@router.get("/unread-count", response_model=schemas.UnreadCount)
def get_unread_count(
    user: models.User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> schemas.UnreadCount:
    return schemas.UnreadCount(unread_count=NotificationService.get_unread_count(db, user.id))
