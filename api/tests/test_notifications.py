"""Tests for comment/like notifications and the polling endpoint."""

from __future__ import annotations

from sqlalchemy.orm import Session

from conftest import sign_in
from medicoz import models


def _post(client, title: str = "My fertility journey") -> int:
    response = client.post(
        "/api/forum/posts",
        json={"title": title, "content": "Two years of trying, finally some answers."},
    )
    assert response.status_code == 201
    return response.json()["post_id"]


def test_comment_emails_author(auth_client, user, make_user, new_client, sent_emails):
    commenter = sign_in(new_client(), make_user(display_name="Priya"))
    post_id = _post(auth_client)

    commenter.post(f"/api/forum/posts/{post_id}/comments", json={"content": "Sending <3"})

    assert len(sent_emails) == 1
    email = sent_emails[0]
    assert email["to"] == user.email
    assert email["subject"] == 'Priya commented on your post: "My fertility journey"'
    # User text is escaped in the HTML body
    assert "Sending &lt;3" in email["html"]
    assert f"/forum/post/{post_id}" in email["html"]


def test_anonymous_comment_notifies_as_anonymous(auth_client, make_user, new_client, sent_emails):
    commenter = sign_in(new_client(), make_user(display_name="Priya"))
    post_id = _post(auth_client)

    commenter.post(
        f"/api/forum/posts/{post_id}/comments",
        json={"content": "Same here", "is_anonymous": True},
    )
    assert sent_emails[0]["subject"].startswith("Anonymous commented")


def test_self_actions_do_not_notify(auth_client, sent_emails, db: Session):
    post_id = _post(auth_client)
    auth_client.post(f"/api/forum/posts/{post_id}/comments", json={"content": "Update: better"})
    auth_client.post(f"/api/forum/posts/{post_id}/like")

    assert sent_emails == []
    assert db.query(models.Notification).count() == 0


def test_email_preference_respected(auth_client, make_user, new_client, sent_emails):
    auth_client.patch("/api/auth/me/notifications", json={"email_notifications": False})
    liker = sign_in(new_client(), make_user())
    post_id = _post(auth_client)

    liker.post(f"/api/forum/posts/{post_id}/like")
    assert sent_emails == []


def test_unlike_does_not_notify(auth_client, make_user, new_client, sent_emails):
    liker = sign_in(new_client(), make_user(display_name="Ana"))
    post_id = _post(auth_client)

    liker.post(f"/api/forum/posts/{post_id}/like")
    liker.post(f"/api/forum/posts/{post_id}/like")

    assert [e["subject"] for e in sent_emails] == ['Ana liked your post: "My fertility journey"']


def test_pending_notifications_drain_once(auth_client, make_user, new_client):
    auth_client.patch("/api/auth/me/notifications", json={"push_notifications": True})
    other = sign_in(new_client(), make_user(display_name="Ana"))
    post_id = _post(auth_client)

    other.post(f"/api/forum/posts/{post_id}/like")
    other.post(f"/api/forum/posts/{post_id}/comments", json={"content": "Rooting for you"})

    assert auth_client.get("/api/notifications/unread-count").json() == {"unread_count": 2}

    pending = auth_client.get("/api/notifications/pending").json()["notifications"]
    assert [n["type"] for n in pending] == ["like", "comment"]
    assert pending[0]["from"] == "Ana"
    assert pending[0]["post_id"] == post_id
    assert pending[0]["post_title"] == "My fertility journey"
    assert pending[1]["message"] == 'Ana commented on your post "My fertility journey"'
    assert "timestamp" in pending[0]

    assert auth_client.get("/api/notifications/pending").json() == {"notifications": []}
    assert auth_client.get("/api/notifications/unread-count").json() == {"unread_count": 0}


def test_no_pending_rows_without_push_preference(auth_client, make_user, new_client, db: Session):
    other = sign_in(new_client(), make_user())
    post_id = _post(auth_client)
    other.post(f"/api/forum/posts/{post_id}/like")

    assert db.query(models.Notification).count() == 0


def test_pending_requires_auth(client):
    assert client.get("/api/notifications/pending").status_code == 401
