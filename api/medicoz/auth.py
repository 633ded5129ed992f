from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import timedelta

from fastapi import Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from . import models, settings
from .deps import get_db
from .models import utcnow

logger = logging.getLogger(__name__)

MODERATOR_ROLES = ("moderator", "admin")


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def create_session(db: Session, user: models.User, request: Request | None = None) -> str:
    """
    Open a server-side session for a user and return the opaque cookie token.

    Only the SHA256 of the token is stored.
    """
    token = secrets.token_urlsafe(32)
    user_agent = request.headers.get("user-agent") if request else None
    session_row = models.UserSession(
        user_id=user.id,
        token_hash=_hash_token(token),
        role=user.role,
        expires_at=utcnow() + timedelta(days=settings.SESSION_MAX_AGE_DAYS),
        ip_address=request.client.host if request and request.client else None,
        user_agent=user_agent[:500] if user_agent else None,
    )
    db.add(session_row)
    db.commit()
    return token


def _find_session(db: Session, token: str) -> models.UserSession | None:
    return (
        db.query(models.UserSession)
        .filter(
            models.UserSession.token_hash == _hash_token(token),
            models.UserSession.revoked == False,  # noqa: E712
            models.UserSession.expires_at > utcnow(),
        )
        .first()
    )


def revoke_session(db: Session, token: str | None) -> bool:
    """Revoke the session behind a cookie token. Returns True if one was found."""
    if not token:
        return False
    session_row = (
        db.query(models.UserSession)
        .filter(models.UserSession.token_hash == _hash_token(token))
        .first()
    )
    if session_row is None:
        return False
    session_row.revoked = True
    db.commit()
    return True


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_MAX_AGE_DAYS * 24 * 60 * 60,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.IS_PRODUCTION,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.IS_PRODUCTION,
    )


def _resolve_user(request: Request, db: Session) -> models.User | None:
    """
    Resolve the user behind the session cookie.

    A session whose user no longer exists is revoked on the way.
    """
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        return None

    session_row = _find_session(db, token)
    if session_row is None:
        return None

    user = db.query(models.User).filter(models.User.id == session_row.user_id).first()
    if user is None:
        logger.warning(f"Session {session_row.id} points at missing user {session_row.user_id}")
        session_row.revoked = True
        db.commit()
    return user


def require_auth(request: Request, db: Session = Depends(get_db)) -> models.User:
    """
    Require a valid session.
    Raises 401 without one and 403 for banned accounts.
    """
    user = _resolve_user(request, db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    if user.is_banned:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account has been banned",
        )
    return user


def optional_auth(request: Request, db: Session = Depends(get_db)) -> models.User | None:
    """Return the signed-in user if any; never fails. Banned users count as anonymous."""
    user = _resolve_user(request, db)
    if user is None or user.is_banned:
        return None
    return user


def require_moderator(user: models.User = Depends(require_auth)) -> models.User:
    """Require moderator or admin role."""
    if user.role not in MODERATOR_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Moderator access required",
        )
    return user


def require_admin(user: models.User = Depends(require_auth)) -> models.User:
    """Require admin role."""
    if user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user
