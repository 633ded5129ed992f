"""Tests for forum posts, comments, likes and episodes."""

from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from conftest import sign_in
from medicoz import models
from medicoz.services.moderation import PROFANITY_REASON


def create_post(client, **overrides) -> int:
    body = {
        "title": "Living with PCOS",
        "content": "Sharing what helped me manage my symptoms this year.",
        **overrides,
    }
    response = client.post("/api/forum/posts", json=body)
    assert response.status_code == 201, response.text
    return response.json()["post_id"]


def create_comment(client, post_id: int, content: str = "Thanks for sharing!", **extra) -> int:
    response = client.post(
        f"/api/forum/posts/{post_id}/comments", json={"content": content, **extra}
    )
    assert response.status_code == 201, response.text
    return response.json()["comment_id"]


@pytest.fixture
def other_client(make_user, new_client):
    """A second signed-in member."""
    return sign_in(new_client(), make_user(display_name="Other Member"))


# ============================================================================
# POSTS
# ============================================================================


def test_create_post_and_list(auth_client, user):
    post_id = create_post(auth_client, tags=["a", "b", "c", "d", "e", "f"])

    response = auth_client.get("/api/forum/posts")
    assert response.status_code == 200
    data = response.json()
    assert data["pagination"] == {"page": 1, "limit": 20, "total": 1, "pages": 1}

    post = data["posts"][0]
    assert post["id"] == post_id
    assert post["type"] == "general"
    assert post["tags"] == ["a", "b", "c", "d", "e"]
    assert post["user"]["username"] == user.username
    assert post["liked_by_me"] is False


def test_create_post_requires_auth(client):
    response = client.post("/api/forum/posts", json={"title": "Hello there", "content": "x" * 20})
    assert response.status_code == 401


@pytest.mark.parametrize(
    "body, detail",
    [
        ({"title": "Hello there"}, "Title and content are required"),
        ({"title": "Hey", "content": "long enough content"}, "Title must be between 5 and 200 characters"),
        ({"title": "x" * 201, "content": "long enough content"}, "Title must be between 5 and 200 characters"),
        ({"title": "Hello there", "content": "short"}, "Content must be at least 10 characters"),
    ],
)
def test_create_post_validation(auth_client, body, detail):
    response = auth_client.post("/api/forum/posts", json=body)
    assert response.status_code == 400
    assert response.json()["detail"] == detail


def test_create_post_rejected_by_moderation(auth_client, db: Session):
    response = auth_client.post(
        "/api/forum/posts",
        json={"title": "Angry post", "content": "This is fuck awful honestly"},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == {
        "message": PROFANITY_REASON,
        "flagged_words": ["fuck"],
    }
    assert db.query(models.Post).count() == 0


def test_clinical_vocabulary_is_allowed(auth_client):
    create_post(
        auth_client,
        title="Vaginal dryness after pregnancy",
        content="Is vaginal dryness normal postpartum? My gynecologist was vague.",
    )


def test_episode_post(auth_client, db: Session):
    episode = db.query(models.Episode).filter(models.Episode.slug == "fertility-journey").one()
    post_id = create_post(auth_client, episode_id=episode.id)

    post = auth_client.get(f"/api/forum/posts/{post_id}").json()["post"]
    assert post["type"] == "episode"
    assert post["episode"]["slug"] == "fertility-journey"


def test_unknown_episode_rejected(auth_client):
    response = auth_client.post(
        "/api/forum/posts",
        json={"title": "Hello there", "content": "long enough content", "episode_id": 9999},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Episode not found"


def test_anonymous_post_hides_author(auth_client, client):
    post_id = create_post(auth_client, is_anonymous=True)

    post = client.get(f"/api/forum/posts/{post_id}").json()["post"]
    assert post["is_anonymous"] is True
    assert post["user"] is None
    assert post["user_id"] is None


def test_get_post_counts_views(auth_client):
    post_id = create_post(auth_client)

    assert auth_client.get(f"/api/forum/posts/{post_id}").json()["post"]["views"] == 1
    assert auth_client.get(f"/api/forum/posts/{post_id}").json()["post"]["views"] == 2


def test_get_missing_post(client):
    response = client.get("/api/forum/posts/424242")
    assert response.status_code == 404
    assert response.json() == {"detail": "Post not found"}


def test_list_filters_by_type_and_episode(auth_client, db: Session):
    episodes = db.query(models.Episode).order_by(models.Episode.episode_number).all()
    general_id = create_post(auth_client)
    first_ep = create_post(auth_client, episode_id=episodes[0].id)
    second_ep = create_post(auth_client, episode_id=episodes[1].id)

    def ids(query: str) -> set[int]:
        return {p["id"] for p in auth_client.get(f"/api/forum/posts{query}").json()["posts"]}

    assert ids("") == {general_id, first_ep, second_ep}
    assert ids("?type=general") == {general_id}
    assert ids("?type=episode") == {first_ep, second_ep}
    assert ids(f"?type=episode&episode_id={episodes[1].id}") == {second_ep}


def test_list_sort_modes(auth_client, other_client):
    older = create_post(auth_client, title="Older post")
    newer = create_post(auth_client, title="Newer post")

    def order(sort: str) -> list[int]:
        posts = auth_client.get(f"/api/forum/posts?sort={sort}").json()["posts"]
        return [p["id"] for p in posts]

    assert order("new") == [newer, older]
    assert order("recent") == [newer, older]

    # Activity bumps the older thread; likes make it popular
    create_comment(other_client, older)
    other_client.post(f"/api/forum/posts/{older}/like")

    assert order("recent") == [older, newer]
    assert order("popular") == [older, newer]
    assert order("new") == [newer, older]


def test_list_pagination(auth_client):
    for i in range(3):
        create_post(auth_client, title=f"Post number {i}")

    page2 = auth_client.get("/api/forum/posts?page=2&limit=2").json()
    assert page2["pagination"] == {"page": 2, "limit": 2, "total": 3, "pages": 2}
    assert len(page2["posts"]) == 1

    clamped = auth_client.get("/api/forum/posts?page=0&limit=500").json()
    assert clamped["pagination"]["page"] == 1
    assert clamped["pagination"]["limit"] == 100


def test_invalid_query_value_is_bad_request(client):
    response = client.get("/api/forum/posts?page=abc")
    assert response.status_code == 400
    assert isinstance(response.json()["detail"], str)


# ============================================================================
# LIKES
# ============================================================================


def test_like_toggle(auth_client, other_client):
    post_id = create_post(auth_client)

    first = other_client.post(f"/api/forum/posts/{post_id}/like")
    assert first.status_code == 200
    assert first.json() == {"message": "Post liked", "liked": True, "likes": 1}

    post = other_client.get(f"/api/forum/posts/{post_id}").json()["post"]
    assert post["liked_by_me"] is True
    assert auth_client.get(f"/api/forum/posts/{post_id}").json()["post"]["liked_by_me"] is False

    second = other_client.post(f"/api/forum/posts/{post_id}/like")
    assert second.json() == {"message": "Post unliked", "liked": False, "likes": 0}


def test_like_missing_post(auth_client):
    assert auth_client.post("/api/forum/posts/999/like").status_code == 404


def test_liked_posts_listing(auth_client, other_client):
    post_id = create_post(auth_client)
    other_client.post(f"/api/forum/posts/{post_id}/like")

    liked = other_client.get("/api/auth/me/liked-posts").json()["posts"]
    assert [p["id"] for p in liked] == [post_id]
    assert liked[0]["user"] is not None
    assert auth_client.get("/api/auth/me/liked-posts").json()["posts"] == []


# ============================================================================
# COMMENTS
# ============================================================================


def test_comment_thread_ordering(auth_client, other_client, db: Session):
    post_id = create_post(auth_client)
    first = create_comment(other_client, post_id, "First top-level comment")
    second = create_comment(auth_client, post_id, "Second top-level comment")
    reply_a = create_comment(auth_client, post_id, "Reply A", parent_comment_id=first)
    reply_b = create_comment(other_client, post_id, "Reply B", parent_comment_id=first)

    comments = auth_client.get(f"/api/forum/posts/{post_id}/comments").json()["comments"]
    assert [c["id"] for c in comments] == [second, first]
    assert [r["id"] for r in comments[1]["replies"]] == [reply_a, reply_b]
    assert comments[1]["user"]["display_name"] == "Other Member"

    post = db.query(models.Post).filter(models.Post.id == post_id).one()
    assert post.comment_count == 4


def test_comment_bumps_activity(auth_client, db: Session):
    post_id = create_post(auth_client)
    before = db.query(models.Post.last_activity_at).filter(models.Post.id == post_id).scalar()

    create_comment(auth_client, post_id)

    after = db.query(models.Post.last_activity_at).filter(models.Post.id == post_id).scalar()
    assert after >= before


def test_reply_to_reply_rejected(auth_client):
    post_id = create_post(auth_client)
    top = create_comment(auth_client, post_id)
    reply = create_comment(auth_client, post_id, parent_comment_id=top)

    response = auth_client.post(
        f"/api/forum/posts/{post_id}/comments",
        json={"content": "Too deep", "parent_comment_id": reply},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid parent comment"


def test_parent_must_belong_to_post(auth_client):
    post_a = create_post(auth_client)
    post_b = create_post(auth_client)
    top = create_comment(auth_client, post_a)

    response = auth_client.post(
        f"/api/forum/posts/{post_b}/comments",
        json={"content": "Wrong thread", "parent_comment_id": top},
    )
    assert response.status_code == 400


@pytest.mark.parametrize(
    "content, detail",
    [
        ("   ", "Comment content is required"),
        ("x" * 2001, "Comment is too long (max 2000 characters)"),
    ],
)
def test_comment_validation(auth_client, content, detail):
    post_id = create_post(auth_client)
    response = auth_client.post(f"/api/forum/posts/{post_id}/comments", json={"content": content})
    assert response.status_code == 400
    assert response.json()["detail"] == detail


def test_comment_rejected_by_moderation(auth_client):
    post_id = create_post(auth_client)
    response = auth_client.post(
        f"/api/forum/posts/{post_id}/comments", json={"content": "what the fuck"}
    )
    assert response.status_code == 400
    assert response.json()["detail"]["flagged_words"] == ["fuck"]


def test_comment_on_missing_post(auth_client):
    response = auth_client.post("/api/forum/posts/777/comments", json={"content": "Hello"})
    assert response.status_code == 404


def test_comment_on_locked_post(auth_client, make_user, new_client):
    post_id = create_post(auth_client)
    moderator = sign_in(new_client(), make_user(role="moderator"))
    assert moderator.post(f"/api/forum/posts/{post_id}/lock").json()["post"]["is_locked"] is True

    response = auth_client.post(f"/api/forum/posts/{post_id}/comments", json={"content": "Hello"})
    assert response.status_code == 403
    assert response.json()["detail"] == "Post is locked"


def test_anonymous_comment_hides_author(auth_client, other_client):
    post_id = create_post(auth_client)
    create_comment(other_client, post_id, "Asking anonymously", is_anonymous=True)

    comment = auth_client.get(f"/api/forum/posts/{post_id}/comments").json()["comments"][0]
    assert comment["user"] is None
    assert comment["user_id"] is None


def test_comment_like_toggle(auth_client, other_client):
    post_id = create_post(auth_client)
    comment_id = create_comment(auth_client, post_id)

    liked = other_client.post(f"/api/forum/comments/{comment_id}/like").json()
    assert liked == {"message": "Comment liked", "liked": True, "likes": 1}

    comment = other_client.get(f"/api/forum/posts/{post_id}/comments").json()["comments"][0]
    assert comment["liked_by_me"] is True

    unliked = other_client.post(f"/api/forum/comments/{comment_id}/like").json()
    assert unliked["liked"] is False
    assert unliked["likes"] == 0


def test_my_posts_and_comments(auth_client, other_client):
    post_id = create_post(auth_client, title="Mine to keep")
    create_comment(other_client, post_id, "Nice one")

    posts = auth_client.get("/api/auth/me/posts").json()["posts"]
    assert [p["id"] for p in posts] == [post_id]

    comments = other_client.get("/api/auth/me/comments").json()["comments"]
    assert comments[0]["post"] == {"id": post_id, "title": "Mine to keep"}


# ============================================================================
# DELETION
# ============================================================================


def test_delete_post_owner_only(auth_client, other_client):
    post_id = create_post(auth_client)

    assert other_client.delete(f"/api/forum/posts/{post_id}").status_code == 403
    assert auth_client.delete(f"/api/forum/posts/{post_id}").status_code == 200
    assert auth_client.get(f"/api/forum/posts/{post_id}").status_code == 404


def test_delete_comment_keeps_comment_count(auth_client, other_client, db: Session):
    post_id = create_post(auth_client)
    comment_id = create_comment(other_client, post_id)

    assert auth_client.delete(f"/api/forum/comments/{comment_id}").status_code == 403
    assert other_client.delete(f"/api/forum/comments/{comment_id}").status_code == 200

    assert auth_client.get(f"/api/forum/posts/{post_id}/comments").json()["comments"] == []
    post = db.query(models.Post).filter(models.Post.id == post_id).one()
    assert post.comment_count == 1


# ============================================================================
# EPISODES
# ============================================================================


def test_episodes_catalog(client):
    episodes = client.get("/api/forum/episodes").json()["episodes"]
    assert [e["episode_number"] for e in episodes] == [5, 4, 3, 2, 1]
    assert episodes[-1]["slug"] == "understanding-pcos"


def test_episode_by_slug(client):
    response = client.get("/api/forum/episodes/menstrual-health")
    assert response.status_code == 200
    assert response.json()["tags"] == ["Menstruation", "Cycle", "Health"]
    assert client.get("/api/forum/episodes/nope").status_code == 404
