"""Authentication and account endpoints."""

from __future__ import annotations

import logging
import secrets
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from .. import models, schemas, settings
from ..auth import (
    clear_session_cookie,
    create_session,
    optional_auth,
    require_auth,
    revoke_session,
    set_session_cookie,
)
from ..deps import get_db
from ..services.accounts import (
    AccountError,
    authenticate_user,
    create_user,
    find_or_create_google_user,
    is_valid_email,
    is_valid_username,
    touch_last_login,
    validate_password,
)
from ..services.email_verification import issue_verification_token, send_verification, verify_email
from ..utils.payloads import build_comment, build_posts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
OAUTH_STATE_COOKIE = "oauth_state"
SIGNIN_ERROR_PATH = "/auth/signin?error="


def _profile(user: models.User) -> schemas.UserProfile:
    return schemas.UserProfile.model_validate(user)


@router.post(
    "/signup",
    response_model=schemas.UserEnvelope,
    status_code=status.HTTP_201_CREATED,
)
def signup(
    payload: schemas.SignupRequest,
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
) -> schemas.UserEnvelope:
    """
    Create a local account and sign it in.

    The verification email goes out after the response; a failed send
    does not fail the signup.
    """
    if not payload.username or not payload.email or not payload.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username, email, and password are required",
        )
    if not is_valid_email(payload.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid email format")
    if not is_valid_username(payload.username):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username must be 3-20 characters, alphanumeric and underscore only",
        )
    password_problem = validate_password(payload.password)
    if password_problem:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=password_problem)

    try:
        user = create_user(
            db,
            username=payload.username,
            email=payload.email,
            password=payload.password,
            display_name=payload.display_name,
        )
    except AccountError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    token = issue_verification_token(db, user)
    background_tasks.add_task(send_verification, user.email, token, user.name)

    set_session_cookie(response, create_session(db, user, request))
    return schemas.UserEnvelope(
        message="Account created! Please check your email to verify your account.",
        user=_profile(user),
    )


@router.post("/signin", response_model=schemas.UserEnvelope)
def signin(
    payload: schemas.SigninRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> schemas.UserEnvelope:
    if not payload.email_or_username or not payload.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email/username and password are required",
        )

    user = authenticate_user(db, payload.email_or_username, payload.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )
    if user.is_banned:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This account has been banned",
        )

    touch_last_login(db, user)
    set_session_cookie(response, create_session(db, user, request))
    logger.info(f"User {user.id} signed in")
    return schemas.UserEnvelope(message="Signed in successfully", user=_profile(user))


@router.post("/signout", response_model=schemas.Message)
def signout(request: Request, response: Response, db: Session = Depends(get_db)) -> schemas.Message:
    revoke_session(db, request.cookies.get(settings.SESSION_COOKIE_NAME))
    clear_session_cookie(response)
    return schemas.Message(message="Signed out successfully")


@router.get("/status", response_model=schemas.AuthStatus, response_model_exclude_none=True)
def auth_status(user: models.User | None = Depends(optional_auth)) -> schemas.AuthStatus:
    if user is None:
        return schemas.AuthStatus(authenticated=False)
    return schemas.AuthStatus(authenticated=True, user=_profile(user))


@router.get("/me", response_model=schemas.UserEnvelope, response_model_exclude_none=True)
def get_me(user: models.User = Depends(require_auth)) -> schemas.UserEnvelope:
    return schemas.UserEnvelope(user=_profile(user))


@router.patch("/me", response_model=schemas.UserEnvelope)
def update_me(
    payload: schemas.ProfileUpdateRequest,
    user: models.User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> schemas.UserEnvelope:
    updated = False

    if payload.display_name is not None:
        if len(payload.display_name) > 50:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Display name must be 50 characters or less",
            )
        user.display_name = payload.display_name.strip()
        updated = True

    if payload.bio is not None:
        if len(payload.bio) > 500:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Bio must be 500 characters or less",
            )
        user.bio = payload.bio.strip()
        updated = True

    if not updated:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid updates provided")

    db.commit()
    db.refresh(user)
    return schemas.UserEnvelope(message="Profile updated successfully", user=_profile(user))


@router.patch("/me/notifications", response_model=schemas.UserEnvelope)
def update_notification_settings(
    payload: schemas.NotificationSettingsRequest,
    user: models.User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> schemas.UserEnvelope:
    if payload.email_notifications is None and payload.push_notifications is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No valid notification settings provided",
        )

    if payload.email_notifications is not None:
        user.email_notifications = payload.email_notifications
    if payload.push_notifications is not None:
        user.push_notifications = payload.push_notifications

    db.commit()
    db.refresh(user)
    return schemas.UserEnvelope(message="Notification preferences updated", user=_profile(user))


@router.get("/me/posts", response_model=schemas.MyPostList)
def my_posts(
    user: models.User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> schemas.MyPostList:
    posts = (
        db.query(models.Post)
        .filter(models.Post.user_id == user.id)
        .order_by(models.Post.created_at.desc(), models.Post.id.desc())
        .all()
    )
    return schemas.MyPostList(posts=build_posts(db, posts, user))


@router.get("/me/comments", response_model=schemas.MyCommentList)
def my_comments(
    user: models.User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> schemas.MyCommentList:
    comments = (
        db.query(models.Comment)
        .filter(models.Comment.user_id == user.id)
        .order_by(models.Comment.created_at.desc(), models.Comment.id.desc())
        .all()
    )
    items = []
    for comment in comments:
        base = build_comment(comment)
        post_ref = (
            schemas.PostRef(id=comment.post.id, title=comment.post.title) if comment.post else None
        )
        items.append(schemas.MyComment(**base.model_dump(), post=post_ref))
    return schemas.MyCommentList(comments=items)


@router.get("/me/liked-posts", response_model=schemas.MyPostList)
def my_liked_posts(
    user: models.User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> schemas.MyPostList:
    posts = (
        db.query(models.Post)
        .join(models.PostLike, models.PostLike.post_id == models.Post.id)
        .filter(models.PostLike.user_id == user.id)
        .order_by(models.Post.created_at.desc(), models.Post.id.desc())
        .all()
    )
    return schemas.MyPostList(posts=build_posts(db, posts, user))


@router.get("/verify-email", response_model=schemas.UserEnvelope)
def verify_email_endpoint(
    token: str | None = Query(None, description="Email verification token"),
    db: Session = Depends(get_db),
) -> schemas.UserEnvelope:
    if not token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid verification token")

    user = verify_email(db, token)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired verification token",
        )

    return schemas.UserEnvelope(
        message="Email verified successfully! You can now access all features.",
        user=_profile(user),
    )


@router.post("/resend-verification", response_model=schemas.Message)
def resend_verification(
    background_tasks: BackgroundTasks,
    user: models.User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> schemas.Message:
    if user.is_verified:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is already verified")

    token = issue_verification_token(db, user)
    background_tasks.add_task(send_verification, user.email, token, user.name)
    return schemas.Message(message="Verification email sent")


# ============================================================================
# GOOGLE OAUTH
# ============================================================================


def _require_google_config() -> None:
    if not settings.GOOGLE_CLIENT_ID or not settings.GOOGLE_CLIENT_SECRET:
        logger.error("Google OAuth requested but credentials are not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Google OAuth not configured",
        )


def _signin_error(code: str) -> RedirectResponse:
    response = RedirectResponse(url=f"{SIGNIN_ERROR_PATH}{code}", status_code=status.HTTP_302_FOUND)
    response.delete_cookie(OAUTH_STATE_COOKIE, path="/")
    return response


@router.get("/google")
def google_login() -> RedirectResponse:
    """Redirect the browser to Google's consent screen."""
    _require_google_config()

    state = secrets.token_urlsafe(24)
    params = {
        "client_id": settings.GOOGLE_CLIENT_ID,
        "redirect_uri": settings.GOOGLE_CALLBACK_URL,
        "response_type": "code",
        "scope": "openid email profile",
        "state": state,
    }
    response = RedirectResponse(url=f"{GOOGLE_AUTH_URL}?{urlencode(params)}", status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        key=OAUTH_STATE_COOKIE,
        value=state,
        max_age=600,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.IS_PRODUCTION,
    )
    return response


@router.get("/google/callback")
def google_callback(
    request: Request,
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    """
    Finish Google sign-in: check state, exchange the code, resolve the account
    and open a session. Every failure lands on the signin page with an error code.
    """
    _require_google_config()

    if error or not code:
        logger.warning(f"Google OAuth callback without code (error={error})")
        return _signin_error("google_auth_failed")

    expected_state = request.cookies.get(OAUTH_STATE_COOKIE)
    if not state or not expected_state or not secrets.compare_digest(state, expected_state):
        logger.warning("Google OAuth state mismatch")
        return _signin_error("invalid_state")

    try:
        with httpx.Client() as client:
            token_response = client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "code": code,
                    "client_id": settings.GOOGLE_CLIENT_ID,
                    "client_secret": settings.GOOGLE_CLIENT_SECRET,
                    "redirect_uri": settings.GOOGLE_CALLBACK_URL,
                    "grant_type": "authorization_code",
                },
                headers={"Accept": "application/json"},
            )
            token_response.raise_for_status()
            access_token = token_response.json()["access_token"]

            profile_response = client.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            profile_response.raise_for_status()
            profile = profile_response.json()
    except (httpx.HTTPError, KeyError) as e:
        logger.error(f"Google OAuth exchange failed: {e}", exc_info=True)
        return _signin_error("google_auth_failed")

    try:
        user = find_or_create_google_user(db, profile)
    except AccountError as e:
        logger.warning(f"Google OAuth rejected: {e}")
        return _signin_error("google_auth_failed")

    if user.is_banned:
        return _signin_error("banned")

    response = RedirectResponse(url="/forum", status_code=status.HTTP_302_FOUND)
    set_session_cookie(response, create_session(db, user, request))
    response.delete_cookie(OAUTH_STATE_COOKIE, path="/")
    logger.info(f"User {user.id} signed in with Google")
    return response
