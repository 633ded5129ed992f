"""Forum endpoints: posts, comments, likes, episodes and moderator tools."""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException, Query, status
from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload

from .. import models, schemas, settings
from ..auth import MODERATOR_ROLES, optional_auth, require_auth, require_moderator
from ..deps import get_db
from ..models import utcnow
from ..pagination import clamp_page, paginate
from ..services.likes import add_like, has_liked, remove_like
from ..services.moderation import content_moderator
from ..services.notifications import notify_new_comment, notify_post_liked
from ..utils.audit import log_moderation_action
from ..utils.payloads import build_comment, build_post, build_posts, liked_comment_ids

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/forum", tags=["Forum"])

ANONYMOUS_NAME = "Anonymous"
MAX_COMMENT_LENGTH = 2000

SORT_ORDERS = {
    "recent": (models.Post.last_activity_at.desc(),),
    "popular": (models.Post.likes.desc(), models.Post.comment_count.desc()),
    "new": (models.Post.created_at.desc(),),
}


def _check_moderation(text: str) -> None:
    """Raise 400 with the reason and flagged words if the text is refused."""
    result = content_moderator.check_content(text)
    if not result.is_allowed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": result.reason, "flagged_words": result.flagged_words},
        )


def _get_post_or_404(db: Session, post_id: int) -> models.Post:
    post = db.query(models.Post).filter(models.Post.id == post_id).first()
    if not post:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return post


def _get_comment_or_404(db: Session, comment_id: int) -> models.Comment:
    comment = db.query(models.Comment).filter(models.Comment.id == comment_id).first()
    if not comment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
    return comment


def _is_moderator(user: models.User) -> bool:
    return user.role in MODERATOR_ROLES


# ============================================================================
# POSTS
# ============================================================================


@router.get("/posts", response_model=schemas.PostList)
def list_posts(
    type: str | None = Query(None, description="general | episode"),
    episode_id: int | None = Query(None),
    page: int = Query(1),
    limit: int = Query(settings.FORUM_PAGE_SIZE_DEFAULT),
    sort: str = Query("recent", description="recent | popular | new"),
    viewer: models.User | None = Depends(optional_auth),
    db: Session = Depends(get_db),
) -> schemas.PostList:
    """
    List visible (non-moderated) posts.

    `type=episode` with an `episode_id` narrows to that episode, without one it
    returns every episode post. Unknown sort keys fall back to `recent`.
    """
    page, limit = clamp_page(page, limit)

    query = (
        db.query(models.Post)
        .options(joinedload(models.Post.author), joinedload(models.Post.episode))
        .filter(models.Post.is_moderated == False)  # noqa: E712
    )
    if type == "general":
        query = query.filter(models.Post.episode_id.is_(None), models.Post.type == "general")
    elif type == "episode":
        if episode_id is not None:
            query = query.filter(models.Post.episode_id == episode_id)
        else:
            query = query.filter(models.Post.episode_id.isnot(None), models.Post.type == "episode")

    order = SORT_ORDERS.get(sort, SORT_ORDERS["recent"])
    query = query.order_by(*order, models.Post.id.desc())

    posts, pagination = paginate(query, page, limit)
    return schemas.PostList(posts=build_posts(db, posts, viewer), pagination=pagination)


@router.get("/posts/{post_id}", response_model=schemas.PostEnvelope)
def get_post(
    post_id: int,
    viewer: models.User | None = Depends(optional_auth),
    db: Session = Depends(get_db),
) -> schemas.PostEnvelope:
    post = _get_post_or_404(db, post_id)

    db.execute(
        update(models.Post)
        .where(models.Post.id == post_id)
        .values(views=models.Post.views + 1)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(post)

    return schemas.PostEnvelope(post=build_posts(db, [post], viewer)[0])


@router.post("/posts", response_model=schemas.PostCreated, status_code=status.HTTP_201_CREATED)
def create_post(
    payload: schemas.PostCreate,
    user: models.User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> schemas.PostCreated:
    title, content = payload.title, payload.content
    if not title or not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Title and content are required")
    if len(title) < 5 or len(title) > 200:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Title must be between 5 and 200 characters",
        )
    if len(content) < 10:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Content must be at least 10 characters",
        )

    _check_moderation(f"{title} {content}")

    if payload.episode_id is not None:
        episode = db.query(models.Episode).filter(models.Episode.id == payload.episode_id).first()
        if not episode:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Episode not found")

    now = utcnow()
    post = models.Post(
        user_id=user.id,
        episode_id=payload.episode_id,
        title=title,
        content=content,
        type="episode" if payload.episode_id is not None else "general",
        is_anonymous=payload.is_anonymous,
        tags=[str(tag) for tag in payload.tags][: settings.MAX_POST_TAGS],
        created_at=now,
        updated_at=now,
        last_activity_at=now,
    )
    db.add(post)
    db.commit()
    db.refresh(post)

    logger.info(f"User {user.id} created post {post.id}")
    return schemas.PostCreated(message="Post created successfully", post_id=post.id)


@router.post("/posts/{post_id}/like", response_model=schemas.LikeToggle)
def toggle_post_like(
    post_id: int,
    background_tasks: BackgroundTasks,
    user: models.User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> schemas.LikeToggle:
    """
    Like or unlike a post.

    The membership row and the counter change in the same commit. The unique
    (post, user) constraint turns a concurrent double-like into a no-op, and
    only the unlike that deleted the row decrements.
    """
    post = _get_post_or_404(db, post_id)

    if has_liked(db, "post", post_id, user.id):
        remove_like(db, "post", post_id, user.id)
        liked = False
    else:
        if add_like(db, "post", post_id, user.id):
            background_tasks.add_task(notify_post_liked, post_id, user.id, user.name)
        liked = True

    db.refresh(post)
    return schemas.LikeToggle(
        message="Post liked" if liked else "Post unliked",
        liked=liked,
        likes=post.likes,
    )


@router.delete("/posts/{post_id}", response_model=schemas.Message)
def delete_post(
    post_id: int,
    user: models.User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> schemas.Message:
    post = _get_post_or_404(db, post_id)
    if post.user_id != user.id and not _is_moderator(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to delete this post")

    if post.user_id != user.id:
        log_moderation_action(
            db, user.id, "remove", "post", post.id,
            reason="Deleted by moderator", flagged_content=post.content,
        )

    db.delete(post)
    db.commit()
    logger.info(f"Post {post_id} deleted by user {user.id}")
    return schemas.Message(message="Post deleted successfully")


# ============================================================================
# COMMENTS
# ============================================================================


@router.get("/posts/{post_id}/comments", response_model=schemas.CommentList)
def list_comments(
    post_id: int,
    viewer: models.User | None = Depends(optional_auth),
    db: Session = Depends(get_db),
) -> schemas.CommentList:
    """Top-level comments newest first, each with its replies oldest first."""
    top_level = (
        db.query(models.Comment)
        .options(joinedload(models.Comment.author))
        .filter(
            models.Comment.post_id == post_id,
            models.Comment.parent_comment_id.is_(None),
            models.Comment.is_moderated == False,  # noqa: E712
        )
        .order_by(models.Comment.created_at.desc(), models.Comment.id.desc())
        .all()
    )

    threads: list[tuple[models.Comment, list[models.Comment]]] = []
    for comment in top_level:
        replies = (
            db.query(models.Comment)
            .options(joinedload(models.Comment.author))
            .filter(
                models.Comment.parent_comment_id == comment.id,
                models.Comment.is_moderated == False,  # noqa: E712
            )
            .order_by(models.Comment.created_at.asc(), models.Comment.id.asc())
            .all()
        )
        threads.append((comment, replies))

    all_ids = [c.id for c, replies in threads] + [r.id for _, replies in threads for r in replies]
    liked = liked_comment_ids(db, viewer, all_ids)

    return schemas.CommentList(
        comments=[
            build_comment(
                comment,
                comment.id in liked,
                [build_comment(reply, reply.id in liked) for reply in replies],
            )
            for comment, replies in threads
        ]
    )


@router.post(
    "/posts/{post_id}/comments",
    response_model=schemas.CommentCreated,
    status_code=status.HTTP_201_CREATED,
)
def create_comment(
    post_id: int,
    payload: schemas.CommentCreate,
    background_tasks: BackgroundTasks,
    user: models.User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> schemas.CommentCreated:
    content = (payload.content or "").strip()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Comment content is required")
    if len(content) > MAX_COMMENT_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Comment is too long (max {MAX_COMMENT_LENGTH} characters)",
        )

    _check_moderation(content)

    post = _get_post_or_404(db, post_id)
    if post.is_locked:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Post is locked")

    if payload.parent_comment_id is not None:
        parent = (
            db.query(models.Comment)
            .filter(models.Comment.id == payload.parent_comment_id)
            .first()
        )
        # Replies only attach to top-level comments of the same post
        if not parent or parent.post_id != post_id or parent.parent_comment_id is not None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid parent comment")

    comment = models.Comment(
        post_id=post_id,
        user_id=user.id,
        parent_comment_id=payload.parent_comment_id,
        content=content,
        is_anonymous=payload.is_anonymous,
    )
    db.add(comment)
    db.flush()
    db.execute(
        update(models.Post)
        .where(models.Post.id == post_id)
        .values(comment_count=models.Post.comment_count + 1, last_activity_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(comment)

    commenter_name = ANONYMOUS_NAME if payload.is_anonymous else user.name
    background_tasks.add_task(notify_new_comment, post_id, user.id, commenter_name, content)

    logger.info(f"User {user.id} commented {comment.id} on post {post_id}")
    return schemas.CommentCreated(message="Comment added successfully", comment_id=comment.id)


@router.post("/comments/{comment_id}/like", response_model=schemas.LikeToggle)
def toggle_comment_like(
    comment_id: int,
    user: models.User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> schemas.LikeToggle:
    comment = _get_comment_or_404(db, comment_id)

    if has_liked(db, "comment", comment_id, user.id):
        remove_like(db, "comment", comment_id, user.id)
        liked = False
    else:
        add_like(db, "comment", comment_id, user.id)
        liked = True

    db.refresh(comment)
    return schemas.LikeToggle(
        message="Comment liked" if liked else "Comment unliked",
        liked=liked,
        likes=comment.likes,
    )


@router.delete("/comments/{comment_id}", response_model=schemas.Message)
def delete_comment(
    comment_id: int,
    user: models.User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> schemas.Message:
    """Delete a comment and its replies. The post's comment_count is left as is."""
    comment = _get_comment_or_404(db, comment_id)
    if comment.user_id != user.id and not _is_moderator(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to delete this comment")

    if comment.user_id != user.id:
        log_moderation_action(
            db, user.id, "remove", "comment", comment.id,
            reason="Deleted by moderator", flagged_content=comment.content,
        )

    db.delete(comment)
    db.commit()
    return schemas.Message(message="Comment deleted successfully")


# ============================================================================
# EPISODES
# ============================================================================


@router.get("/episodes", response_model=schemas.EpisodeList)
def list_episodes(db: Session = Depends(get_db)) -> schemas.EpisodeList:
    episodes = db.query(models.Episode).order_by(models.Episode.episode_number.desc()).all()
    return schemas.EpisodeList(episodes=[schemas.Episode.model_validate(e) for e in episodes])


@router.get("/episodes/{slug}", response_model=schemas.Episode)
def get_episode(slug: str, db: Session = Depends(get_db)) -> schemas.Episode:
    episode = db.query(models.Episode).filter(models.Episode.slug == slug).first()
    if not episode:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Episode not found")
    return schemas.Episode.model_validate(episode)


# ============================================================================
# MODERATOR TOOLS
# ============================================================================


def _apply_moderation(
    target: models.Post | models.Comment,
    action: str,
    moderator: models.User,
    reason: str,
) -> None:
    if action == "remove":
        target.is_moderated = True
        target.moderated_by = moderator.id
        target.moderated_at = utcnow()
        target.moderation_reason = reason or None
    else:
        target.is_moderated = False
        target.moderated_by = None
        target.moderated_at = None
        target.moderation_reason = None


@router.post("/posts/{post_id}/moderate", response_model=schemas.Message)
def moderate_post(
    post_id: int,
    payload: schemas.ModerateRequest,
    moderator: models.User = Depends(require_moderator),
    db: Session = Depends(get_db),
) -> schemas.Message:
    post = _get_post_or_404(db, post_id)
    _apply_moderation(post, payload.action, moderator, payload.reason)
    db.commit()

    log_moderation_action(
        db, moderator.id, payload.action, "post", post.id,
        reason=payload.reason, flagged_content=post.content,
    )
    logger.info(f"Moderator {moderator.id} applied {payload.action} to post {post.id}")
    return schemas.Message(message="Post removed" if payload.action == "remove" else "Post approved")


@router.post("/comments/{comment_id}/moderate", response_model=schemas.Message)
def moderate_comment(
    comment_id: int,
    payload: schemas.ModerateRequest,
    moderator: models.User = Depends(require_moderator),
    db: Session = Depends(get_db),
) -> schemas.Message:
    comment = _get_comment_or_404(db, comment_id)
    _apply_moderation(comment, payload.action, moderator, payload.reason)
    db.commit()

    log_moderation_action(
        db, moderator.id, payload.action, "comment", comment.id,
        reason=payload.reason, flagged_content=comment.content,
    )
    logger.info(f"Moderator {moderator.id} applied {payload.action} to comment {comment.id}")
    return schemas.Message(
        message="Comment removed" if payload.action == "remove" else "Comment approved"
    )


@router.post("/posts/{post_id}/pin", response_model=schemas.PostEnvelope)
def toggle_pin(
    post_id: int,
    moderator: models.User = Depends(require_moderator),
    db: Session = Depends(get_db),
) -> schemas.PostEnvelope:
    post = _get_post_or_404(db, post_id)
    post.is_pinned = not post.is_pinned
    db.commit()
    db.refresh(post)
    logger.info(f"Moderator {moderator.id} set pinned={post.is_pinned} on post {post.id}")
    return schemas.PostEnvelope(post=build_post(post))


@router.post("/posts/{post_id}/lock", response_model=schemas.PostEnvelope)
def toggle_lock(
    post_id: int,
    moderator: models.User = Depends(require_moderator),
    db: Session = Depends(get_db),
) -> schemas.PostEnvelope:
    post = _get_post_or_404(db, post_id)
    post.is_locked = not post.is_locked
    db.commit()
    db.refresh(post)
    logger.info(f"Moderator {moderator.id} set locked={post.is_locked} on post {post.id}")
    return schemas.PostEnvelope(post=build_post(post))


def _get_ban_target(db: Session, user_id: int, moderator: models.User) -> models.User:
    target = db.query(models.User).filter(models.User.id == user_id).first()
    if not target:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if target.id == moderator.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot ban yourself")
    if target.role in MODERATOR_ROLES and moderator.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can ban moderators or admins",
        )
    return target


@router.post("/users/{user_id}/ban", response_model=schemas.Message)
def ban_user(
    user_id: int,
    payload: schemas.BanRequest | None = Body(None),
    moderator: models.User = Depends(require_moderator),
    db: Session = Depends(get_db),
) -> schemas.Message:
    """Ban a user and revoke all of their sessions."""
    target = _get_ban_target(db, user_id, moderator)
    reason = payload.reason if payload else ""

    target.is_banned = True
    db.query(models.UserSession).filter(models.UserSession.user_id == target.id).update(
        {"revoked": True}, synchronize_session=False
    )
    db.commit()

    log_moderation_action(db, moderator.id, "ban", "user", target.id, reason=reason)
    logger.info(f"Moderator {moderator.id} banned user {target.id}")
    return schemas.Message(message="User banned")


@router.delete("/users/{user_id}/ban", response_model=schemas.Message)
def unban_user(
    user_id: int,
    moderator: models.User = Depends(require_moderator),
    db: Session = Depends(get_db),
) -> schemas.Message:
    target = _get_ban_target(db, user_id, moderator)
    target.is_banned = False
    db.commit()

    log_moderation_action(db, moderator.id, "approve", "user", target.id, reason="Ban lifted")
    logger.info(f"Moderator {moderator.id} unbanned user {target.id}")
    return schemas.Message(message="User unbanned")


@router.get("/moderation/logs", response_model=schemas.ModerationLogList)
def list_moderation_logs(
    limit: int = Query(50, ge=1, le=200),
    moderator: models.User = Depends(require_moderator),
    db: Session = Depends(get_db),
) -> schemas.ModerationLogList:
    logs = (
        db.query(models.ModerationLog)
        .order_by(models.ModerationLog.created_at.desc(), models.ModerationLog.id.desc())
        .limit(limit)
        .all()
    )
    return schemas.ModerationLogList(logs=[schemas.ModerationLog.model_validate(log) for log in logs])
