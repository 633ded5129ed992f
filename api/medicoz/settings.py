"""Centralized environment-driven settings.

Keep this module lightweight: stdlib only, no app imports, to avoid circular deps.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _bool_env(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
IS_PRODUCTION: bool = ENVIRONMENT == "production"
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# Public URL of the web client, used to build links in emails and redirects.
CLIENT_URL: str = os.getenv("CLIENT_URL", "http://localhost:3000")

CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5000")

# Session cookie
SESSION_COOKIE_NAME: str = os.getenv("SESSION_COOKIE_NAME", "xxperiment.sid")
SESSION_MAX_AGE_DAYS: int = _int_env("SESSION_MAX_AGE_DAYS", 7)

# Email verification
EMAIL_VERIFICATION_EXPIRY_HOURS: int = _int_env("EMAIL_VERIFICATION_EXPIRY_HOURS", 24)

# Google OAuth
GOOGLE_CLIENT_ID: str | None = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET: str | None = os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_CALLBACK_URL: str = os.getenv(
    "GOOGLE_CALLBACK_URL", "http://localhost:3000/api/auth/google/callback"
)

# Resend
RESEND_API_KEY: str | None = os.getenv("RESEND_API_KEY")
RESEND_FROM_EMAIL: str = os.getenv(
    "RESEND_FROM_EMAIL", "The XXperiment <onboarding@resend.dev>"
)
# Until the sending domain is verified at Resend, every message goes to the
# account owner's address instead of the real recipient.
RESEND_DOMAIN_VERIFIED: bool = _bool_env("RESEND_DOMAIN_VERIFIED", False)
RESEND_TEST_RECIPIENT: str = os.getenv("RESEND_TEST_RECIPIENT", "cto@medicoz.info")

# Forum limits
FORUM_PAGE_SIZE_DEFAULT: int = _int_env("FORUM_PAGE_SIZE_DEFAULT", 20)
FORUM_PAGE_SIZE_MAX: int = _int_env("FORUM_PAGE_SIZE_MAX", 100)
MAX_POST_TAGS: int = 5
