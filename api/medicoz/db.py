from __future__ import annotations

import logging
import os
from typing import Generator
from urllib.parse import quote_plus

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

logger = logging.getLogger(__name__)


def _url_from_components(prefix: str, default_name: str) -> str | None:
    user = os.getenv(f"{prefix}_USER")
    password = os.getenv(f"{prefix}_PASSWORD")
    name = os.getenv(f"{prefix}_NAME", default_name)
    host = os.getenv(f"{prefix}_HOST", "db")
    port = os.getenv(f"{prefix}_PORT", "5432")

    if user and password:
        # URL-encode the password in case it contains special characters
        encoded_pass = quote_plus(password)
        return f"postgresql+psycopg://{user}:{encoded_pass}@{host}:{port}/{name}"
    return None


def get_database_url() -> str:
    """Get the URL of the main store (users, forum, sessions, contacts)."""
    url = os.getenv("DATABASE_URL") or _url_from_components("DB", "xxperiment")
    if url:
        return url

    raise RuntimeError(
        "DATABASE_URL (or DB_USER and DB_PASSWORD) must be set."
    )


def get_admin_database_url() -> str:
    """Get the URL of the admin store that mirrors contact submissions.

    Falls back to the main store when no separate admin database is configured.
    """
    return (
        os.getenv("ADMIN_DATABASE_URL")
        or _url_from_components("ADMIN_DB", "medicoz_admin")
        or get_database_url()
    )


def _make_engine(url: str) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        # TestClient runs handlers in a worker thread.
        connect_args["check_same_thread"] = False
    return create_engine(
        url,
        future=True,
        echo=os.getenv("LOG_LEVEL", "INFO").upper() == "DEBUG",
        pool_pre_ping=True,
        connect_args=connect_args,
    )


DATABASE_URL = get_database_url()
ADMIN_DATABASE_URL = get_admin_database_url()


class Base(DeclarativeBase):
    """Base class for models stored in the main database."""


class AdminBase(DeclarativeBase):
    """Base class for models stored in the admin database."""


engine = _make_engine(DATABASE_URL)
admin_engine = _make_engine(ADMIN_DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
AdminSessionLocal = sessionmaker(
    bind=admin_engine, autoflush=False, autocommit=False, future=True
)


def init_db() -> None:
    """Create tables and indexes in both stores. Safe to call repeatedly."""
    from . import models  # noqa: F401  (registers mappers)

    Base.metadata.create_all(bind=engine)
    AdminBase.metadata.create_all(bind=admin_engine)
    logger.info("Database schema ensured (main + admin)")


def get_session() -> Generator[Session, None, None]:
    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def get_admin_session() -> Generator[Session, None, None]:
    session: Session = AdminSessionLocal()
    try:
        yield session
    finally:
        session.close()
