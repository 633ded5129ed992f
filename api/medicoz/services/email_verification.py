"""Email verification token service for secure token generation and validation."""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import timedelta

from sqlalchemy.orm import Session

from .. import models, settings
from ..models import utcnow
from .email import send_verification_email

logger = logging.getLogger(__name__)

TOKEN_EXPIRY_HOURS = settings.EMAIL_VERIFICATION_EXPIRY_HOURS


def _hash_token(token: str) -> str:
    """Hash a token using SHA256 for secure storage."""
    return hashlib.sha256(token.encode()).hexdigest()


def issue_verification_token(db: Session, user: models.User) -> str:
    """
    Create a new verification token for the user, replacing any outstanding one.

    Returns:
        The plain token (to be sent via email)
    """
    token = secrets.token_hex(32)
    expires_at = utcnow() + timedelta(hours=TOKEN_EXPIRY_HOURS)

    user.email_verification_token_hash = _hash_token(token)
    user.email_verification_expires = expires_at
    db.commit()

    logger.info(f"Created verification token for user {user.id}, expires at {expires_at}")
    return token


def verify_email(db: Session, token: str) -> models.User | None:
    """
    Mark the owner of a token as verified. Tokens are single use.

    Returns:
        The user if verification succeeded, None for unknown or expired tokens
    """
    user = (
        db.query(models.User)
        .filter(models.User.email_verification_token_hash == _hash_token(token))
        .first()
    )
    if not user:
        logger.warning("Verification token not found")
        return None

    if user.email_verification_expires is None or user.email_verification_expires < utcnow():
        logger.warning(f"Verification token expired at {user.email_verification_expires}")
        return None

    user.is_verified = True
    user.email_verification_token_hash = None
    user.email_verification_expires = None
    db.commit()
    db.refresh(user)

    logger.info(f"Email verified for user {user.id} ({user.email})")
    return user


def send_verification(to_email: str, token: str, name: str) -> None:
    """Background-task entry point: send the verification link, never raise."""
    try:
        result = send_verification_email(to_email=to_email, token=token, name=name)
        if result is None:
            logger.warning(f"Verification email to {to_email} was not sent")
    except Exception as e:
        logger.error(f"Failed to send verification email: {e}")
