"""Client Cache Tests

The patch protocol only touches the cached page and never fetches.
"""

import json

import pytest
import pytest_asyncio
from httpx import ASGITransport

from memberhub.client.api import LiveSync, MemberHubAPIError, MemberHubClient
from memberhub.client.cache import CollectionCache, PageCache
from tests.factories import create_event, create_post


def events_page(*ids, page=1, total=None, limit=5):
    items = [{"id": i, "title": i, "attendees": [], "attendeeCount": 0, "maxAttendees": 10} for i in ids]
    return PageCache(
        collection="events",
        page=page,
        items=items,
        total=total if total is not None else len(items),
        total_pages=1,
        limit=limit,
    )


def posts_page(*ids, page=1, total=None, limit=2):
    items = [{"id": i, "title": i, "likes": 0, "comments": []} for i in ids]
    total = total if total is not None else len(items)
    return PageCache(collection="posts", page=page, items=items, total=total, total_pages=1, limit=limit)


def message(message_type, data):
    return {"type": message_type, "topic": "x", "data": data, "timestamp": "2026-10-19T00:00:00+00:00"}


class TestEventUpdatePatch:
    """Test eventUpdate handling"""

    def test_updates_count_of_cached_event(self):
        cache = CollectionCache()
        cache.set_page(events_page("E1", "E2"))

        changed = cache.apply(message("eventUpdate", {"eventId": "E2", "attendeeCount": 4}))

        assert changed
        assert cache.get_page("events").find("E2")["attendeeCount"] == 4
        assert cache.get_page("events").find("E1")["attendeeCount"] == 0

    def test_patched_event_drops_stale_attendee_list(self):
        cache = CollectionCache()
        page = events_page("E1")
        page.items[0]["attendees"] = ["m1"]
        page.items[0]["attendeeCount"] = 1
        cache.set_page(page)

        cache.apply(message("eventUpdate", {"eventId": "E1", "attendeeCount": 2}))

        event = cache.get_page("events").find("E1")
        assert event["attendeeCount"] == 2
        assert "attendees" not in event

    def test_event_not_on_cached_page_is_noop(self):
        cache = CollectionCache()
        cache.set_page(events_page("E1", "E2"))
        before = [dict(item) for item in cache.get_page("events").items]

        changed = cache.apply(message("eventUpdate", {"eventId": "E5", "attendeeCount": 9}))

        assert not changed
        assert cache.get_page("events").items == before

    def test_no_cached_page_is_noop(self):
        cache = CollectionCache()

        assert not cache.apply(message("eventUpdate", {"eventId": "E1", "attendeeCount": 1}))


class TestForumPatches:
    """Test newComment, newPost and postLiked handling"""

    def test_new_comment_appended_to_cached_post(self):
        cache = CollectionCache()
        cache.set_page(posts_page("P1", "P2"))
        comment = {"author": {"id": "m1", "name": "Ada", "avatar": None}, "content": "hi", "createdAt": "t"}

        assert cache.apply(message("newComment", {"postId": "P1", "comment": comment}))

        assert cache.get_page("posts").find("P1")["comments"] == [comment]
        assert cache.get_page("posts").find("P2")["comments"] == []

    def test_new_comment_for_other_page_is_noop(self):
        cache = CollectionCache()
        cache.set_page(posts_page("P1"))

        assert not cache.apply(message("newComment", {"postId": "P9", "comment": {"content": "x"}}))

    def test_new_post_prepended_on_first_page(self):
        cache = CollectionCache()
        cache.set_page(posts_page("P2", "P1", total=3, limit=2))

        assert cache.apply(message("newPost", {"id": "P3", "title": "P3", "comments": []}))

        page = cache.get_page("posts")
        assert [p["id"] for p in page.items] == ["P3", "P2"]
        assert page.total == 4
        assert page.total_pages == 2

    def test_new_post_on_later_page_only_counts(self):
        cache = CollectionCache()
        cache.set_page(posts_page("P1", page=2, total=3, limit=2))

        cache.apply(message("newPost", {"id": "P4"}))

        page = cache.get_page("posts")
        assert [p["id"] for p in page.items] == ["P1"]
        assert page.total == 4

    def test_post_liked(self):
        cache = CollectionCache()
        cache.set_page(posts_page("P1"))

        cache.apply(message("postLiked", {"postId": "P1", "likes": 7}))

        assert cache.get_page("posts").find("P1")["likes"] == 7

    def test_unknown_message_type_ignored(self):
        cache = CollectionCache()
        cache.set_page(posts_page("P1"))

        assert not cache.apply({"type": "subscribed", "topics": ["posts"]})

    @pytest.mark.parametrize("frame", [
        [1, 2],
        "postLiked",
        {"type": "postLiked", "data": [1]},
        {"type": "postLiked"},
        {"type": "newComment", "data": {"postId": "P1", "comment": "hi"}},
    ])
    def test_malformed_messages_ignored(self, frame):
        cache = CollectionCache()
        cache.set_page(posts_page("P1"))

        assert not cache.apply(frame)
        assert cache.get_page("posts").find("P1")["comments"] == []


class TestPageCache:
    """Test building a page from a list response"""

    def test_from_response(self):
        page = PageCache.from_response("events", {
            "events": [{"id": "E1"}], "total": 6, "totalPages": 2, "page": 2, "limit": 5,
        })

        assert page.page == 2
        assert page.total == 6
        assert page.total_pages == 2
        assert page.limit == 5
        assert page.find("E1") == {"id": "E1"}


@pytest_asyncio.fixture
async def api_client(app, make_token):
    client = MemberHubClient("http://test", token=make_token("m1"), transport=ASGITransport(app=app))
    yield client
    await client.aclose()


class TestLiveSync:
    """Fetch through the REST client, then patch from broadcasts"""

    @pytest.mark.asyncio
    async def test_load_then_patch_from_real_broadcast(self, api_client, db, subscription):
        db.insert("events", create_event("E1", max_attendees=3, date="2026-11-01"))
        db.insert("events", create_event("E2", max_attendees=3, date="2026-11-02"))
        sync = LiveSync(api_client)

        page = await sync.load("events", page=1, limit=1)
        assert [e["id"] for e in page.items] == ["E1"]
        assert page.total_pages == 2

        await api_client.rsvp("E1")
        await api_client.rsvp("E2")

        frames = []
        while not subscription.queue.empty():
            frames.append(subscription.queue.get_nowait())

        results = [sync.handle(json.dumps(frame)) for frame in frames]

        assert results == [True, False]
        assert sync.cache.get_page("events").find("E1")["attendeeCount"] == 1

    @pytest.mark.asyncio
    async def test_client_surfaces_error_message(self, api_client, db):
        db.insert("events", create_event("E1", max_attendees=1, attendees=["m2"]))

        with pytest.raises(MemberHubAPIError) as exc_info:
            await api_client.rsvp("E1")

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Event is full"

    @pytest.mark.asyncio
    async def test_listen_applies_stream(self, api_client, db):
        db.insert("posts", create_post("P1"))
        frames = [
            json.dumps({"type": "subscribed", "topics": ["posts"]}),
            "garbage",
            "[1, 2]",
            json.dumps({"type": "postLiked", "data": [1]}),
            json.dumps(message("postLiked", {"postId": "P1", "likes": 5})),
        ]
        urls = []

        class FakeSocket:
            async def __aenter__(self):
                return self

            async def __aexit__(self, *exc):
                return False

            async def __aiter__(self):
                for frame in frames:
                    yield frame

        def fake_connect(url):
            urls.append(url)
            return FakeSocket()

        sync = LiveSync(api_client, connect=fake_connect)
        await sync.load("posts")
        await sync.listen(["posts"])

        assert urls[0].startswith("ws://test/ws?topics=posts&token=")
        assert sync.cache.get_page("posts").find("P1")["likes"] == 5

    @pytest.mark.asyncio
    async def test_unsynchronized_collection(self, api_client):
        sync = LiveSync(api_client)

        with pytest.raises(ValueError):
            await sync.load("members")
