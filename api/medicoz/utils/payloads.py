"""Build response schemas from ORM rows, hiding authors of anonymous content."""

from __future__ import annotations

from sqlalchemy.orm import Session

from .. import models, schemas


def liked_post_ids(db: Session, user: models.User | None, post_ids: list[int]) -> set[int]:
    if user is None or not post_ids:
        return set()
    rows = (
        db.query(models.PostLike.post_id)
        .filter(models.PostLike.user_id == user.id, models.PostLike.post_id.in_(post_ids))
        .all()
    )
    return {row.post_id for row in rows}


def liked_comment_ids(db: Session, user: models.User | None, comment_ids: list[int]) -> set[int]:
    if user is None or not comment_ids:
        return set()
    rows = (
        db.query(models.CommentLike.comment_id)
        .filter(
            models.CommentLike.user_id == user.id,
            models.CommentLike.comment_id.in_(comment_ids),
        )
        .all()
    )
    return {row.comment_id for row in rows}


def _author(row: models.Post | models.Comment) -> schemas.UserPublic | None:
    if row.is_anonymous or row.author is None:
        return None
    return schemas.UserPublic.model_validate(row.author)


def build_post(post: models.Post, liked: bool = False) -> schemas.Post:
    return schemas.Post(
        id=post.id,
        user_id=None if post.is_anonymous else post.user_id,
        episode_id=post.episode_id,
        title=post.title,
        content=post.content,
        type=post.type,
        is_anonymous=post.is_anonymous,
        is_pinned=post.is_pinned,
        is_locked=post.is_locked,
        is_moderated=post.is_moderated,
        likes=post.likes,
        comment_count=post.comment_count,
        views=post.views,
        tags=post.tags or [],
        created_at=post.created_at,
        updated_at=post.updated_at,
        last_activity_at=post.last_activity_at,
        user=_author(post),
        episode=schemas.Episode.model_validate(post.episode) if post.episode else None,
        liked_by_me=liked,
    )


def build_posts(db: Session, posts: list[models.Post], viewer: models.User | None) -> list[schemas.Post]:
    liked = liked_post_ids(db, viewer, [p.id for p in posts])
    return [build_post(p, p.id in liked) for p in posts]


def build_comment(
    comment: models.Comment,
    liked: bool = False,
    replies: list[schemas.Comment] | None = None,
) -> schemas.Comment:
    return schemas.Comment(
        id=comment.id,
        post_id=comment.post_id,
        user_id=None if comment.is_anonymous else comment.user_id,
        parent_comment_id=comment.parent_comment_id,
        content=comment.content,
        is_anonymous=comment.is_anonymous,
        likes=comment.likes,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        user=_author(comment),
        liked_by_me=liked,
        replies=replies or [],
    )
