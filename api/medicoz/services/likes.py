"""Like membership rows and the counters they drive on posts and comments."""

from __future__ import annotations

import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models

logger = logging.getLogger(__name__)

# target type -> (membership model, membership target column, counted model)
_TARGETS = {
    "post": (models.PostLike, models.PostLike.post_id, models.Post),
    "comment": (models.CommentLike, models.CommentLike.comment_id, models.Comment),
}


def _bump(db: Session, counted, target_id: int, delta: int) -> None:
    db.execute(
        update(counted)
        .where(counted.id == target_id)
        .values(likes=counted.likes + delta)
        .execution_options(synchronize_session=False)
    )


def has_liked(db: Session, target_type: str, target_id: int, user_id: int) -> bool:
    like_model, target_col, _ = _TARGETS[target_type]
    row = (
        db.query(like_model.id)
        .filter(target_col == target_id, like_model.user_id == user_id)
        .first()
    )
    return row is not None


def add_like(db: Session, target_type: str, target_id: int, user_id: int) -> bool:
    """
    Record a like and increment the counter in one commit.

    Returns False when the (target, user) row already exists; the counter is
    left untouched in that case.
    """
    like_model, target_col, counted = _TARGETS[target_type]
    try:
        db.add(like_model(**{target_col.key: target_id, "user_id": user_id}))
        db.flush()
        _bump(db, counted, target_id, 1)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(f"Duplicate like on {target_type} {target_id} by user {user_id} ignored")
        return False
    return True


def remove_like(db: Session, target_type: str, target_id: int, user_id: int) -> bool:
    """
    Drop a like and decrement the counter in one commit.

    Only the request that actually deleted the row decrements, so two
    overlapping unlikes move the counter once.
    """
    like_model, target_col, counted = _TARGETS[target_type]
    deleted = (
        db.query(like_model)
        .filter(target_col == target_id, like_model.user_id == user_id)
        .delete(synchronize_session=False)
    )
    if deleted:
        _bump(db, counted, target_id, -1)
    db.commit()
    return bool(deleted)
