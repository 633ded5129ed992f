"""
Forum Notification Service.

Tells post authors about new comments and likes: an in-browser notification
row (drained by client polling) and, if enabled, a templated email.
"""

from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models, settings
from ..db import SessionLocal
from . import email as email_service

logger = logging.getLogger(__name__)


def _post_url(post_id: int) -> str:
    return f"{settings.CLIENT_URL}/forum/post/{post_id}"


class NotificationService:
    """Service for creating and draining forum notifications."""

    @staticmethod
    def create_notification(
        db: Session,
        recipient: models.User,
        notification_type: str,
        post: models.Post,
        from_name: str,
        message: str,
    ) -> models.Notification:
        notification = models.Notification(
            user_id=recipient.id,
            type=notification_type,
            message=message,
            post_id=post.id,
            post_title=post.title,
            from_name=from_name,
        )
        db.add(notification)
        db.commit()
        db.refresh(notification)

        logger.info(
            f"Created {notification_type} notification {notification.id} for user {recipient.id}"
        )
        return notification

    @staticmethod
    def drain_pending(db: Session, user_id: int) -> list[models.Notification]:
        """Return undelivered notifications, oldest first, and mark them delivered."""
        pending = (
            db.query(models.Notification)
            .filter(
                models.Notification.user_id == user_id,
                models.Notification.delivered == False,  # noqa: E712
            )
            .order_by(models.Notification.created_at.asc(), models.Notification.id.asc())
            .all()
        )
        for notification in pending:
            notification.delivered = True
        if pending:
            db.commit()
        return pending

    @staticmethod
    def get_unread_count(db: Session, user_id: int) -> int:
        return (
            db.query(func.count(models.Notification.id))
            .filter(
                models.Notification.user_id == user_id,
                models.Notification.delivered == False,  # noqa: E712
            )
            .scalar()
            or 0
        )

    @staticmethod
    def notify_comment(
        db: Session,
        post: models.Post,
        commenter_id: int,
        commenter_name: str,
        content: str,
    ) -> None:
        author = post.author
        # Don't notify users about their own actions
        if author is None or author.id == commenter_id:
            return

        if author.push_notifications:
            NotificationService.create_notification(
                db,
                author,
                "comment",
                post,
                from_name=commenter_name,
                message=f'{commenter_name} commented on your post "{post.title}"',
            )

        if author.email_notifications:
            html = email_service.create_comment_notification_email(
                author.name, commenter_name, post.title, content, _post_url(post.id)
            )
            email_service.send_email(
                to=author.email,
                subject=f'{commenter_name} commented on your post: "{post.title}"',
                html=html,
            )

    @staticmethod
    def notify_like(db: Session, post: models.Post, liker_id: int, liker_name: str) -> None:
        author = post.author
        if author is None or author.id == liker_id:
            return

        if author.push_notifications:
            NotificationService.create_notification(
                db,
                author,
                "like",
                post,
                from_name=liker_name,
                message=f'{liker_name} liked your post "{post.title}"',
            )

        if author.email_notifications:
            html = email_service.create_like_notification_email(
                author.name, liker_name, post.title, _post_url(post.id)
            )
            email_service.send_email(
                to=author.email,
                subject=f'{liker_name} liked your post: "{post.title}"',
                html=html,
            )


# Background-task entry points. They run after the response has been sent,
# so they open their own session and only ever log failures.


def notify_new_comment(post_id: int, commenter_id: int, commenter_name: str, content: str) -> None:
    db = SessionLocal()
    try:
        post = db.query(models.Post).filter(models.Post.id == post_id).first()
        if post is None:
            return
        NotificationService.notify_comment(db, post, commenter_id, commenter_name, content)
    except Exception as e:
        logger.error(f"Error sending new comment notification for post {post_id}: {e}")
    finally:
        db.close()


def notify_post_liked(post_id: int, liker_id: int, liker_name: str) -> None:
    db = SessionLocal()
    try:
        post = db.query(models.Post).filter(models.Post.id == post_id).first()
        if post is None:
            return
        NotificationService.notify_like(db, post, liker_id, liker_name)
    except Exception as e:
        logger.error(f"Error sending post liked notification for post {post_id}: {e}")
    finally:
        db.close()
