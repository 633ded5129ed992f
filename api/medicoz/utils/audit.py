"""Audit logging utility for moderation actions."""

from __future__ import annotations

from sqlalchemy.orm import Session

from .. import models


def log_moderation_action(
    db: Session,
    moderator_id: int,
    action: str,
    target_type: str,
    target_id: int,
    reason: str | None = None,
    flagged_content: str | None = None,
) -> models.ModerationLog:
    """
    Log a moderation action to the moderation log.

    Args:
        db: Database session
        moderator_id: ID of the user performing the action
        action: One of flag, remove, ban, warn, approve
        target_type: One of post, comment, user
        target_id: ID of the target entity
        reason: Free-text reason shown in the log
        flagged_content: Snapshot of the content acted on, if any

    Returns:
        Created ModerationLog entry
    """
    entry = models.ModerationLog(
        moderator_id=moderator_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        reason=reason or "",
        flagged_content=flagged_content,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry
