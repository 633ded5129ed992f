from __future__ import annotations

import os
import tempfile
from itertools import count
from pathlib import Path
from typing import Callable, Generator

import pytest

# Both stores point at throwaway SQLite files; must happen before medicoz is imported.
_TMP_DIR = Path(tempfile.mkdtemp(prefix="medicoz-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR / 'main.db'}"
os.environ["ADMIN_DATABASE_URL"] = f"sqlite:///{_TMP_DIR / 'admin.db'}"
os.environ.pop("RESEND_API_KEY", None)
os.environ.pop("GOOGLE_CLIENT_ID", None)
os.environ.pop("GOOGLE_CLIENT_SECRET", None)

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from medicoz import models  # noqa: E402
from medicoz.db import AdminBase, AdminSessionLocal, Base, SessionLocal, admin_engine, engine  # noqa: E402
from medicoz.main import app, run_startup_tasks  # noqa: E402
from medicoz.services import accounts  # noqa: E402
from medicoz.services import email as email_service  # noqa: E402

DEFAULT_PASSWORD = "Passw0rd!"

_user_numbers = count(1)


@pytest.fixture(scope="session", autouse=True)
def bootstrap() -> None:
    run_startup_tasks()


@pytest.fixture(autouse=True)
def clean_tables() -> Generator[None, None, None]:
    """Empty every table except the seeded episode catalog after each test."""
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            if table.name != models.Episode.__tablename__:
                conn.execute(table.delete())
    with admin_engine.begin() as conn:
        for table in reversed(AdminBase.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch: pytest.MonkeyPatch) -> list[dict]:
    """Capture outgoing emails instead of calling Resend."""
    outbox: list[dict] = []

    def _fake_send_email(to, subject, html, from_email=None):
        outbox.append({"to": to, "subject": subject, "html": html})
        return {"id": f"test-{len(outbox)}"}

    monkeypatch.setattr(email_service, "send_email", _fake_send_email)
    return outbox


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def new_client() -> Callable[[], TestClient]:
    """Factory for extra clients, one per simultaneously signed-in user."""
    return lambda: TestClient(app)


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Create a database session for testing."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def admin_db() -> Generator[Session, None, None]:
    session = AdminSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def make_user(db: Session) -> Callable[..., models.User]:
    """Create a local account directly in the store."""

    def _make_user(
        username: str | None = None,
        password: str = DEFAULT_PASSWORD,
        role: str = "user",
        **fields,
    ) -> models.User:
        n = next(_user_numbers)
        username = username or f"member{n}"
        user = accounts.create_user(
            db,
            username=username,
            email=fields.pop("email", f"{username}@example.com"),
            password=password,
            display_name=fields.pop("display_name", None),
        )
        user.role = role
        for key, value in fields.items():
            setattr(user, key, value)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


def sign_in(client: TestClient, user: models.User, password: str = DEFAULT_PASSWORD) -> TestClient:
    response = client.post(
        "/api/auth/signin",
        json={"email_or_username": user.username, "password": password},
    )
    assert response.status_code == 200, response.text
    return client


@pytest.fixture()
def user(make_user) -> models.User:
    return make_user()


@pytest.fixture()
def auth_client(client: TestClient, user: models.User) -> TestClient:
    """Client signed in as `user`."""
    return sign_in(client, user)
