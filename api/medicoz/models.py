from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .db import AdminBase, Base


def utcnow() -> datetime:
    """Naive UTC timestamp, comparable with values read back from any backend."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ============================================================================
# CORE ENTITIES
# ============================================================================


class User(Base):
    """Forum account, created by signup or by Google sign-in."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=True)  # NULL for OAuth-only accounts
    display_name = Column(String(100), nullable=True)
    avatar = Column(String(1000), nullable=True)
    bio = Column(Text, nullable=True)

    role = Column(String(20), nullable=False, default="user", index=True)  # user, moderator, admin
    is_verified = Column(Boolean, nullable=False, default=False)
    is_banned = Column(Boolean, nullable=False, default=False, index=True)

    # Single outstanding verification token, stored hashed
    email_verification_token_hash = Column(String(64), nullable=True, index=True)
    email_verification_expires = Column(DateTime, nullable=True)

    google_id = Column(String(255), nullable=True, unique=True)
    auth_provider = Column(String(20), nullable=False, default="local")  # local, google

    # Notification preferences
    email_notifications = Column(Boolean, nullable=False, default=True)
    push_notifications = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    last_login = Column(DateTime, nullable=True)

    # Relationships
    sessions = relationship(
        "UserSession", back_populates="user", cascade="all, delete-orphan"
    )
    posts = relationship("Post", back_populates="author", foreign_keys="Post.user_id")
    comments = relationship(
        "Comment", back_populates="author", foreign_keys="Comment.user_id"
    )

    @property
    def name(self) -> str:
        return self.display_name or self.username


class UserSession(Base):
    """Server-side login session. The cookie only carries the opaque token."""

    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    role = Column(String(20), nullable=False, default="user")
    expires_at = Column(DateTime, nullable=False, index=True)
    revoked = Column(Boolean, nullable=False, default=False)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User", back_populates="sessions")


class Episode(Base):
    """Podcast episode that forum threads may attach to."""

    __tablename__ = "episodes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slug = Column(String(200), unique=True, nullable=False, index=True)
    title = Column(String(300), nullable=False)
    description = Column(Text, nullable=False, default="")
    episode_number = Column(Integer, nullable=False, index=True)
    release_date = Column(DateTime, nullable=False)
    cover_image = Column(String(1000), nullable=True)
    audio_url = Column(String(1000), nullable=True)
    duration = Column(Integer, nullable=True)  # seconds
    tags = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


# ============================================================================
# FORUM
# ============================================================================


class Post(Base):
    """Forum thread, either a general discussion or tied to an episode."""

    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    episode_id = Column(Integer, ForeignKey("episodes.id"), nullable=True, index=True)

    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    type = Column(String(20), nullable=False, default="general")  # general, episode
    is_anonymous = Column(Boolean, nullable=False, default=False)
    tags = Column(JSON, nullable=False, default=list)

    # Moderation
    is_moderated = Column(Boolean, nullable=False, default=False, index=True)
    moderated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    moderated_at = Column(DateTime, nullable=True)
    moderation_reason = Column(Text, nullable=True)
    is_pinned = Column(Boolean, nullable=False, default=False)
    is_locked = Column(Boolean, nullable=False, default=False)

    # Counters, only ever changed with single-statement increments
    likes = Column(Integer, nullable=False, default=0)
    comment_count = Column(Integer, nullable=False, default=0)
    views = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    last_activity_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    author = relationship("User", back_populates="posts", foreign_keys=[user_id])
    episode = relationship("Episode")
    comments = relationship(
        "Comment", back_populates="post", cascade="all, delete-orphan"
    )
    liked_by = relationship(
        "PostLike", back_populates="post", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_posts_moderated_activity", is_moderated, last_activity_at.desc()),
        Index("ix_posts_popular", likes.desc(), comment_count.desc()),
    )


class PostLike(Base):
    """Membership of a user in a post's liked-by set."""

    __tablename__ = "post_likes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    post = relationship("Post", back_populates="liked_by")

    __table_args__ = (UniqueConstraint("post_id", "user_id", name="uq_post_likes_post_user"),)


class Comment(Base):
    """Comment on a post. Replies reference a top-level comment; no deeper nesting."""

    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_comment_id = Column(
        Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True, index=True
    )
    content = Column(Text, nullable=False)
    is_anonymous = Column(Boolean, nullable=False, default=False)

    # Moderation
    is_moderated = Column(Boolean, nullable=False, default=False, index=True)
    moderated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    moderated_at = Column(DateTime, nullable=True)
    moderation_reason = Column(Text, nullable=True)

    likes = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    post = relationship("Post", back_populates="comments")
    author = relationship("User", back_populates="comments", foreign_keys=[user_id])
    replies = relationship("Comment", cascade="all, delete-orphan")
    liked_by = relationship(
        "CommentLike", back_populates="comment", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("ix_comments_post_parent", post_id, parent_comment_id),)


class CommentLike(Base):
    """Membership of a user in a comment's liked-by set."""

    __tablename__ = "comment_likes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    comment_id = Column(
        Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    comment = relationship("Comment", back_populates="liked_by")

    __table_args__ = (
        UniqueConstraint("comment_id", "user_id", name="uq_comment_likes_comment_user"),
    )


class ModerationLog(Base):
    """Audit trail of moderator actions."""

    __tablename__ = "moderation_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    moderator_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    action = Column(String(20), nullable=False)  # flag, remove, ban, warn, approve
    target_type = Column(String(20), nullable=False)  # post, comment, user
    target_id = Column(Integer, nullable=False, index=True)
    reason = Column(Text, nullable=False, default="")
    flagged_content = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)


# ============================================================================
# NOTIFICATIONS
# ============================================================================


class Notification(Base):
    """Pending in-browser notification, drained by client polling."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), nullable=False)  # comment, like
    message = Column(String(500), nullable=False)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    post_title = Column(String(200), nullable=False)
    from_name = Column(String(100), nullable=False)
    delivered = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    __table_args__ = (Index("ix_notifications_user_delivered", user_id, delivered),)


# ============================================================================
# CONTACT FORMS
# ============================================================================


class _ContactFormColumns:
    """Columns shared by the main-store record and its admin-store mirror."""

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    message = Column(Text, nullable=False)
    intent = Column(String(20), nullable=False)  # partnership, pilot, sponsorship, careers
    links = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    is_replied = Column(Boolean, nullable=False, default=False)
    reply_message = Column(Text, nullable=True)
    replied_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class ContactForm(_ContactFormColumns, Base):
    """Contact submission as written to the main store."""

    __tablename__ = "contacts"


class AdminContactForm(_ContactFormColumns, AdminBase):
    """Mirror of a contact submission in the admin store; the admin panel works on these."""

    __tablename__ = "admin_contacts"

    # Main-store id of the submission this row mirrors
    source_id = Column(Integer, nullable=True, index=True)
