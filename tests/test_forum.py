"""Forum Tests

Posts, append-only comments and their broadcasts.
"""

import pytest

from tests.factories import create_comment, create_member, create_post, drain


@pytest.fixture
def forum_members(db):
    db.insert("members", create_member("m1", name="Ada Lovelace", avatar="/uploads/avatars/ada.png"))
    db.insert("members", create_member("m2", name="Alan Turing"))


class TestCommentCreation:
    """Test comment append behaviour"""

    @pytest.mark.asyncio
    async def test_comment_scenario(self, test_client, db, auth_headers, subscription, forum_members):
        db.insert("posts", create_post("P1", author="m2"))

        response = await test_client.post("/posts/P1/comments", json={"content": "hi"}, headers=auth_headers("m1"))

        assert response.status_code == 201
        body = response.json()
        assert body["author"] == "m1"
        assert body["content"] == "hi"
        assert set(body) == {"author", "content", "createdAt"}

        messages = drain(subscription)
        assert len(messages) == 1
        assert messages[0]["type"] == "newComment"
        assert messages[0]["topic"] == "posts"
        assert messages[0]["data"] == {
            "postId": "P1",
            "comment": {
                "author": {"id": "m1", "name": "Ada Lovelace", "avatar": "/uploads/avatars/ada.png"},
                "content": "hi",
                "createdAt": body["createdAt"],
            },
        }

    @pytest.mark.asyncio
    async def test_comments_are_appended_in_order(self, test_client, db, auth_headers, forum_members):
        existing = [create_comment("m2", "first"), create_comment("m1", "second")]
        db.insert("posts", create_post("P1", comments=existing))

        await test_client.post("/posts/P1/comments", json={"content": "third"}, headers=auth_headers("m2"))

        comments = db.get("posts", "P1")["comments"]
        assert [c["content"] for c in comments] == ["first", "second", "third"]
        assert comments[:2] == existing

    @pytest.mark.asyncio
    async def test_comment_unknown_post(self, test_client, auth_headers, subscription):
        response = await test_client.post("/posts/nope/comments", json={"content": "hi"}, headers=auth_headers())

        assert response.status_code == 404
        assert response.json() == {"message": "Post not found"}
        assert drain(subscription) == []

    @pytest.mark.asyncio
    async def test_post_response_shape(self, test_client, db, auth_headers, forum_members):
        post = create_post("P1", author="m2", comments=[create_comment("m1", "hi")])
        post["moderationFlag"] = True
        db.insert("posts", post)

        response = await test_client.get("/posts/P1", headers=auth_headers())

        body = response.json()
        assert set(body) == {"id", "title", "content", "author", "createdAt", "likes", "comments"}
        assert body["author"] == {"id": "m2", "name": "Alan Turing", "avatar": None}
        assert set(body["comments"][0]) == {"author", "content", "createdAt"}

    @pytest.mark.asyncio
    async def test_empty_comment_rejected(self, test_client, db, auth_headers):
        db.insert("posts", create_post("P1"))

        response = await test_client.post("/posts/P1/comments", json={"content": ""}, headers=auth_headers())

        assert response.status_code == 400
        assert db.get("posts", "P1")["comments"] == []

    @pytest.mark.asyncio
    async def test_unknown_author_resolves_to_id_only(self, test_client, db, auth_headers, subscription):
        db.insert("posts", create_post("P1"))

        await test_client.post("/posts/P1/comments", json={"content": "hello"}, headers=auth_headers("ghost"))

        comment = drain(subscription)[0]["data"]["comment"]
        assert comment["author"] == {"id": "ghost", "name": None, "avatar": None}


class TestPosts:
    """Test post listing, creation and likes"""

    @pytest.mark.asyncio
    async def test_list_posts_newest_first_with_resolved_authors(self, test_client, db, auth_headers, forum_members):
        db.insert("posts", create_post("old", author="m1", created_at="2026-01-01T00:00:00+00:00"))
        db.insert("posts", create_post(
            "new", author="m2", created_at="2026-02-01T00:00:00+00:00",
            comments=[create_comment("m1", "nice")],
        ))

        response = await test_client.get("/posts", headers=auth_headers())

        assert response.status_code == 200
        data = response.json()
        assert [p["id"] for p in data["posts"]] == ["new", "old"]
        assert data["posts"][0]["author"]["name"] == "Alan Turing"
        assert data["posts"][0]["comments"][0]["author"]["name"] == "Ada Lovelace"
        assert data["total"] == 2
        assert data["totalPages"] == 1

    @pytest.mark.asyncio
    async def test_create_post_broadcasts_resolved_post(self, test_client, auth_headers, subscription, forum_members):
        response = await test_client.post(
            "/posts", json={"title": "Welcome", "content": "Hello all"}, headers=auth_headers("m1")
        )

        assert response.status_code == 201
        post = response.json()
        assert post["author"]["name"] == "Ada Lovelace"
        assert post["likes"] == 0
        assert post["comments"] == []

        messages = drain(subscription)
        assert messages[0]["type"] == "newPost"
        assert messages[0]["data"] == post

    @pytest.mark.asyncio
    async def test_like_post(self, test_client, db, auth_headers, subscription):
        db.insert("posts", create_post("P1", likes=2))

        response = await test_client.post("/posts/P1/like", headers=auth_headers())

        assert response.status_code == 200
        assert response.json()["likes"] == 3
        assert drain(subscription)[0]["data"] == {"postId": "P1", "likes": 3}

    @pytest.mark.asyncio
    async def test_get_post(self, test_client, db, auth_headers, forum_members):
        db.insert("posts", create_post("P1", author="m2"))

        response = await test_client.get("/posts/P1", headers=auth_headers())

        assert response.status_code == 200
        assert response.json()["author"] == {"id": "m2", "name": "Alan Turing", "avatar": None}
