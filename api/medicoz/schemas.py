from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# BASE SCHEMAS
# ============================================================================


class Message(BaseModel):
    """Plain acknowledgement."""

    message: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok"] = "ok"
    uptime_s: float | None = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


# ============================================================================
# USER SCHEMAS
# ============================================================================


class UserPublic(BaseModel):
    """User as shown to other members. Never carries email or secrets."""

    id: int
    username: str
    display_name: str | None = None
    avatar: str | None = None
    bio: str | None = None
    role: Literal["user", "moderator", "admin"]
    is_verified: bool
    auth_provider: Literal["local", "google"]
    created_at: datetime
    last_login: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class UserProfile(UserPublic):
    """User as shown to themselves."""

    email_notifications: bool
    push_notifications: bool


class UserEnvelope(BaseModel):
    message: str | None = None
    user: UserProfile | None = None


class AuthStatus(BaseModel):
    authenticated: bool
    user: UserProfile | None = None


class SignupRequest(BaseModel):
    username: str | None = None
    email: str | None = None
    password: str | None = None
    display_name: str | None = None


class SigninRequest(BaseModel):
    email_or_username: str | None = None
    password: str | None = None


class ProfileUpdateRequest(BaseModel):
    display_name: str | None = None
    bio: str | None = None


class NotificationSettingsRequest(BaseModel):
    email_notifications: bool | None = None
    push_notifications: bool | None = None


# ============================================================================
# EPISODE SCHEMAS
# ============================================================================


class Episode(BaseModel):
    id: int
    slug: str
    title: str
    description: str
    episode_number: int
    release_date: datetime
    cover_image: str | None = None
    audio_url: str | None = None
    duration: int | None = None
    tags: list[str] = []

    model_config = ConfigDict(from_attributes=True)


class EpisodeList(BaseModel):
    episodes: list[Episode]


# ============================================================================
# POST SCHEMAS
# ============================================================================


class Post(BaseModel):
    """Forum post with its author and episode resolved."""

    id: int
    user_id: int | None = None  # None for anonymous posts
    episode_id: int | None = None
    title: str
    content: str
    type: Literal["general", "episode"]
    is_anonymous: bool
    is_pinned: bool
    is_locked: bool
    is_moderated: bool
    likes: int
    comment_count: int
    views: int
    tags: list[str] = []
    created_at: datetime
    updated_at: datetime
    last_activity_at: datetime
    user: UserPublic | None = None
    episode: Episode | None = None
    liked_by_me: bool = False


class PostList(BaseModel):
    posts: list[Post]
    pagination: Pagination


class PostEnvelope(BaseModel):
    post: Post


class PostCreate(BaseModel):
    title: str | None = None
    content: str | None = None
    episode_id: int | None = None
    tags: list[str] = Field(default_factory=list)
    is_anonymous: bool = False


class PostCreated(BaseModel):
    message: str
    post_id: int


class PostRef(BaseModel):
    id: int
    title: str


class LikeToggle(BaseModel):
    message: str
    liked: bool
    likes: int


# ============================================================================
# COMMENT SCHEMAS
# ============================================================================


class Comment(BaseModel):
    id: int
    post_id: int
    user_id: int | None = None  # None for anonymous comments
    parent_comment_id: int | None = None
    content: str
    is_anonymous: bool
    likes: int
    created_at: datetime
    updated_at: datetime
    user: UserPublic | None = None
    liked_by_me: bool = False
    replies: list[Comment] = []


class CommentList(BaseModel):
    comments: list[Comment]


class CommentCreate(BaseModel):
    content: str | None = None
    parent_comment_id: int | None = None
    is_anonymous: bool = False


class CommentCreated(BaseModel):
    message: str
    comment_id: int


class MyComment(Comment):
    post: PostRef | None = None


class MyCommentList(BaseModel):
    comments: list[MyComment]


class MyPostList(BaseModel):
    posts: list[Post]


# ============================================================================
# MODERATION SCHEMAS
# ============================================================================


class ModerateRequest(BaseModel):
    action: Literal["remove", "approve"]
    reason: str = Field("", max_length=1000)


class BanRequest(BaseModel):
    reason: str = Field("", max_length=1000)


class ModerationLog(BaseModel):
    id: int
    moderator_id: int
    action: Literal["flag", "remove", "ban", "warn", "approve"]
    target_type: Literal["post", "comment", "user"]
    target_id: int
    reason: str
    flagged_content: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ModerationLogList(BaseModel):
    logs: list[ModerationLog]


# ============================================================================
# NOTIFICATION SCHEMAS
# ============================================================================


class PendingNotification(BaseModel):
    id: int
    type: Literal["comment", "like"]
    message: str
    post_id: int
    post_title: str
    from_: str = Field(..., serialization_alias="from")
    timestamp: datetime


class PendingNotificationList(BaseModel):
    notifications: list[PendingNotification]


class UnreadCount(BaseModel):
    unread_count: int


# ============================================================================
# CONTACT SCHEMAS
# ============================================================================


ContactIntent = Literal["partnership", "pilot", "sponsorship", "careers"]


class ContactSubmit(BaseModel):
    name: str | None = None
    email: str | None = None
    message: str | None = None
    intent: str | None = None
    links: str | None = None


class ContactSubmitted(BaseModel):
    success: bool = True
    message: str
    contact_id: int


class Contact(BaseModel):
    id: int
    name: str
    email: str
    message: str
    intent: ContactIntent
    links: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    is_read: bool
    is_replied: bool
    reply_message: str | None = None
    replied_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ContactList(BaseModel):
    success: bool = True
    contacts: list[Contact]


class ContactEnvelope(BaseModel):
    success: bool = True
    contact: Contact


class ContactReply(BaseModel):
    reply_message: str | None = None


class ContactAck(BaseModel):
    success: bool = True
    message: str
