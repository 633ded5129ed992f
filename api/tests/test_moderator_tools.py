"""Tests for moderator-only forum endpoints."""

from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from conftest import sign_in
from medicoz import models


@pytest.fixture
def moderator(make_user) -> models.User:
    return make_user(username="mod_mia", role="moderator")


@pytest.fixture
def mod_client(moderator, new_client):
    return sign_in(new_client(), moderator)


def _post(client) -> int:
    response = client.post(
        "/api/forum/posts",
        json={"title": "Question about cycles", "content": "How long is a normal cycle for you?"},
    )
    assert response.status_code == 201
    return response.json()["post_id"]


def test_regular_user_cannot_moderate(auth_client):
    post_id = _post(auth_client)

    response = auth_client.post(f"/api/forum/posts/{post_id}/moderate", json={"action": "remove"})
    assert response.status_code == 403
    assert response.json()["detail"] == "Moderator access required"
    assert auth_client.get("/api/forum/moderation/logs").status_code == 403


def test_remove_and_approve_post(auth_client, mod_client, moderator, db: Session):
    post_id = _post(auth_client)

    removed = mod_client.post(
        f"/api/forum/posts/{post_id}/moderate",
        json={"action": "remove", "reason": "Off topic"},
    )
    assert removed.status_code == 200
    assert removed.json() == {"message": "Post removed"}
    assert auth_client.get("/api/forum/posts").json()["posts"] == []

    post = db.query(models.Post).filter(models.Post.id == post_id).one()
    assert post.is_moderated is True
    assert post.moderated_by == moderator.id
    assert post.moderation_reason == "Off topic"

    mod_client.post(f"/api/forum/posts/{post_id}/moderate", json={"action": "approve"})
    assert [p["id"] for p in auth_client.get("/api/forum/posts").json()["posts"]] == [post_id]

    logs = mod_client.get("/api/forum/moderation/logs").json()["logs"]
    assert [log["action"] for log in logs] == ["approve", "remove"]
    assert logs[1]["target_type"] == "post"
    assert logs[1]["target_id"] == post_id
    assert logs[1]["reason"] == "Off topic"


def test_unknown_moderation_action(auth_client, mod_client):
    post_id = _post(auth_client)
    response = mod_client.post(f"/api/forum/posts/{post_id}/moderate", json={"action": "explode"})
    assert response.status_code == 400


def test_removed_comment_hidden(auth_client, mod_client):
    post_id = _post(auth_client)
    comment_id = auth_client.post(
        f"/api/forum/posts/{post_id}/comments", json={"content": "A comment"}
    ).json()["comment_id"]

    response = mod_client.post(
        f"/api/forum/comments/{comment_id}/moderate", json={"action": "remove", "reason": "Spam"}
    )
    assert response.json() == {"message": "Comment removed"}
    assert auth_client.get(f"/api/forum/posts/{post_id}/comments").json()["comments"] == []


def test_pin_toggles(auth_client, mod_client):
    post_id = _post(auth_client)
    assert mod_client.post(f"/api/forum/posts/{post_id}/pin").json()["post"]["is_pinned"] is True
    assert mod_client.post(f"/api/forum/posts/{post_id}/pin").json()["post"]["is_pinned"] is False


def test_moderator_can_delete_any_post(auth_client, mod_client, db: Session):
    post_id = _post(auth_client)

    assert mod_client.delete(f"/api/forum/posts/{post_id}").status_code == 200
    log = db.query(models.ModerationLog).one()
    assert (log.action, log.target_type, log.target_id) == ("remove", "post", post_id)


def test_ban_and_unban(auth_client, mod_client, user, db: Session):
    response = mod_client.post(f"/api/forum/users/{user.id}/ban", json={"reason": "Harassment"})
    assert response.status_code == 200

    db.refresh(user)
    assert user.is_banned is True
    # Existing sessions are revoked
    assert auth_client.get("/api/auth/me").status_code == 401

    assert mod_client.delete(f"/api/forum/users/{user.id}/ban").status_code == 200
    db.refresh(user)
    assert user.is_banned is False

    actions = [log["action"] for log in mod_client.get("/api/forum/moderation/logs").json()["logs"]]
    assert actions == ["approve", "ban"]


def test_ban_without_body(mod_client, user):
    assert mod_client.post(f"/api/forum/users/{user.id}/ban").status_code == 200


def test_moderator_cannot_ban_admin(mod_client, make_user):
    admin = make_user(role="admin")
    response = mod_client.post(f"/api/forum/users/{admin.id}/ban")
    assert response.status_code == 403


def test_admin_can_ban_moderator(moderator, make_user, new_client):
    admin_client = sign_in(new_client(), make_user(role="admin"))
    assert admin_client.post(f"/api/forum/users/{moderator.id}/ban").status_code == 200


def test_ban_unknown_user(mod_client):
    assert mod_client.post("/api/forum/users/99999/ban").status_code == 404
