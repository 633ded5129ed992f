"""User accounts: password hashing, signup/signin and Google federation."""

from __future__ import annotations

import logging
import re
import secrets
import string
from typing import Any

from passlib.context import CryptContext
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..models import utcnow

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]{3,20}$")

DUPLICATE_USER_MESSAGE = "User with this email or username already exists"


class AccountError(ValueError):
    """Raised when an account operation is refused (duplicate, banned...)."""


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email))


def is_valid_username(username: str) -> bool:
    # 3-20 characters, alphanumeric and underscore only
    return bool(USERNAME_RE.match(username))


def validate_password(password: str) -> str | None:
    """Return a human-readable reason if the password is too weak, else None."""
    if len(password) < 8:
        return "Password must be at least 8 characters long"
    if not re.search(r"[A-Z]", password):
        return "Password must contain at least one uppercase letter"
    if not re.search(r"[a-z]", password):
        return "Password must contain at least one lowercase letter"
    if not re.search(r"[0-9]", password):
        return "Password must contain at least one number"
    return None


def find_user_by_login(db: Session, email_or_username: str) -> models.User | None:
    """Look a user up by email or username, case-insensitively."""
    key = email_or_username.strip().lower()
    return (
        db.query(models.User)
        .filter(or_(models.User.email == key, models.User.username == key))
        .first()
    )


def create_user(
    db: Session,
    username: str,
    email: str,
    password: str,
    display_name: str | None = None,
) -> models.User:
    """
    Create a local (password) account.

    Email and username are stored lower-cased; display_name defaults to the
    username as typed.

    Raises:
        AccountError: If the email or username is already taken
    """
    email_key = email.strip().lower()
    username_key = username.strip().lower()

    existing = (
        db.query(models.User)
        .filter(or_(models.User.email == email_key, models.User.username == username_key))
        .first()
    )
    if existing:
        raise AccountError(DUPLICATE_USER_MESSAGE)

    user = models.User(
        username=username_key,
        email=email_key,
        password_hash=hash_password(password),
        display_name=(display_name or "").strip() or username.strip(),
        role="user",
        is_verified=False,
        is_banned=False,
        auth_provider="local",
        email_notifications=True,
        push_notifications=False,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race against a concurrent signup for the same name/email
        db.rollback()
        raise AccountError(DUPLICATE_USER_MESSAGE)
    db.refresh(user)

    logger.info(f"Created local account {user.id} ({user.username})")
    return user


def authenticate_user(db: Session, email_or_username: str, password: str) -> models.User | None:
    """
    Check a password login.

    Returns:
        The user on success, None for unknown users, OAuth-only accounts and
        wrong passwords. Banned users are returned as-is; the caller decides.
    """
    user = find_user_by_login(db, email_or_username)
    if not user or not user.password_hash:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def touch_last_login(db: Session, user: models.User) -> None:
    user.last_login = utcnow()
    db.commit()


def _google_username(email: str) -> str:
    alphabet = string.ascii_lowercase + string.digits
    suffix = "".join(secrets.choice(alphabet) for _ in range(4))
    return email.split("@")[0].lower() + suffix


GOOGLE_USERNAME_ATTEMPTS = 5


def _free_google_username(db: Session, email: str) -> str:
    for _ in range(GOOGLE_USERNAME_ATTEMPTS):
        username = _google_username(email)
        taken = db.query(models.User.id).filter(models.User.username == username).first()
        if not taken:
            return username
    raise AccountError("Could not allocate a username for this Google account")


def find_or_create_google_user(db: Session, profile: dict[str, Any]) -> models.User:
    """
    Resolve the local account for a Google profile.

    An existing account with the same email is linked to the Google id and
    auto-verified; otherwise a verified `google` account is created.

    Args:
        profile: Google userinfo payload (`sub`, `email`, `name`, `picture`)

    Raises:
        AccountError: If the profile carries no email, or no free username
            could be generated
    """
    email = (profile.get("email") or "").strip().lower()
    if not email:
        raise AccountError("No email found from Google")

    google_id = str(profile.get("sub") or profile.get("id") or "")
    avatar = profile.get("picture")

    user = db.query(models.User).filter(models.User.email == email).first()
    if user is None:
        user = models.User(
            username=_free_google_username(db, email),
            email=email,
            display_name=profile.get("name"),
            avatar=avatar,
            google_id=google_id,
            auth_provider="google",
            role="user",
            is_verified=True,
            is_banned=False,
        )
        db.add(user)
        logger.info(f"Creating account for Google user {email}")
    elif not user.google_id:
        user.google_id = google_id
        user.is_verified = True
        user.avatar = avatar or user.avatar
        logger.info(f"Linked Google account to user {user.id}")

    user.last_login = utcnow()
    try:
        db.commit()
    except IntegrityError:
        # Lost a race for the email or the generated username
        db.rollback()
        raise AccountError(DUPLICATE_USER_MESSAGE)
    db.refresh(user)
    return user
