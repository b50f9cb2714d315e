"""
MemberHub API Client

An async client for the REST API plus a live-sync helper that keeps a
CollectionCache current from the broadcast WebSocket.
"""

import json
import logging
from typing import Callable, Iterable, Optional
from urllib.parse import urlencode

import httpx
import websockets

from .cache import CollectionCache, PageCache

logger = logging.getLogger(__name__)

COLLECTION_TOPICS = {"events": "events", "posts": "posts"}


class MemberHubAPIError(Exception):
    """Error response from the API"""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


class MemberHubClient:
    """Client for interacting with the MemberHub REST API."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: The base URL of the API (e.g., "https://members.example.org/api")
            token: Bearer token issued by the identity provider
            timeout: Request timeout in seconds
            transport: Optional httpx transport (in-process testing)
        """
        self.base_url = base_url.rstrip('/')
        self.token = token
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.client = httpx.AsyncClient(
            base_url=self.base_url, headers=headers, timeout=timeout, transport=transport
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self):
        await self.client.aclose()

    async def _request(self, method: str, path: str, **kwargs):
        response = await self.client.request(method, path, **kwargs)
        if response.status_code >= 400:
            try:
                message = response.json().get("message", response.text)
            except ValueError:
                message = response.text
            raise MemberHubAPIError(response.status_code, message)
        return response.json()

    # ==================== Members ====================

    async def get_me(self) -> dict:
        return await self._request("GET", "/members/me")

    async def list_members(self, page: int = 1, limit: Optional[int] = None, search: str = "") -> dict:
        params = {"page": page, "search": search}
        if limit:
            params["limit"] = limit
        return await self._request("GET", "/members", params=params)

    async def get_member(self, uid: str) -> dict:
        return await self._request("GET", f"/members/{uid}")

    async def update_member(self, uid: str, **fields) -> dict:
        """Update profile fields (camelCase or snake_case keys)."""
        return await self._request("PUT", f"/members/{uid}", json=fields)

    async def upload_avatar(self, uid: str, filename: str, content: bytes) -> dict:
        return await self._request("POST", f"/members/{uid}/avatar", files={"file": (filename, content)})

    # ==================== Events ====================

    async def list_events(self, page: int = 1, limit: Optional[int] = None) -> dict:
        params = {"page": page}
        if limit:
            params["limit"] = limit
        return await self._request("GET", "/events", params=params)

    async def create_event(
        self,
        title: str,
        date: str,
        location: str,
        max_attendees: int,
        description: str = None
    ) -> dict:
        payload = {
            "title": title,
            "date": date,
            "location": location,
            "maxAttendees": max_attendees,
        }
        if description:
            payload["description"] = description
        return await self._request("POST", "/events", json=payload)

    async def rsvp(self, event_id: str, member_id: str = None) -> dict:
        payload = {"memberId": member_id} if member_id else None
        return await self._request("POST", f"/events/{event_id}/rsvp", json=payload)

    async def cancel_rsvp(self, event_id: str, member_id: str = None) -> dict:
        payload = {"memberId": member_id} if member_id else None
        return await self._request("DELETE", f"/events/{event_id}/rsvp", json=payload)

    # ==================== Forum ====================

    async def list_posts(self, page: int = 1, limit: Optional[int] = None) -> dict:
        params = {"page": page}
        if limit:
            params["limit"] = limit
        return await self._request("GET", "/posts", params=params)

    async def create_post(self, title: str, content: str) -> dict:
        return await self._request("POST", "/posts", json={"title": title, "content": content})

    async def add_comment(self, post_id: str, content: str) -> dict:
        return await self._request("POST", f"/posts/{post_id}/comments", json={"content": content})

    async def like_post(self, post_id: str) -> dict:
        return await self._request("POST", f"/posts/{post_id}/like")

    # ==================== Realtime ====================

    def websocket_url(self, topics: Optional[Iterable[str]] = None) -> str:
        if self.base_url.startswith("https://"):
            url = "wss://" + self.base_url[len("https://"):]
        elif self.base_url.startswith("http://"):
            url = "ws://" + self.base_url[len("http://"):]
        else:
            url = self.base_url
        params = {}
        if topics:
            params["topics"] = ",".join(topics)
        if self.token:
            params["token"] = self.token
        return f"{url}/ws" + (f"?{urlencode(params)}" if params else "")


class LiveSync:
    """Fetches pages into a CollectionCache and applies broadcasts to them"""

    def __init__(
        self,
        client: MemberHubClient,
        cache: Optional[CollectionCache] = None,
        connect: Callable = websockets.connect,
    ):
        self.client = client
        self.cache = cache or CollectionCache()
        self._connect = connect

    async def load(self, collection: str, page: int = 1, limit: Optional[int] = None) -> PageCache:
        """Fetch a page and make it the cached page for its collection"""
        if collection == "events":
            data = await self.client.list_events(page, limit)
        elif collection == "posts":
            data = await self.client.list_posts(page, limit)
        else:
            raise ValueError(f"Collection {collection} is not synchronized")

        cached = PageCache.from_response(collection, data)
        self.cache.set_page(cached)
        return cached

    def handle(self, raw) -> bool:
        """Apply one broadcast frame to the cache"""
        message = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        changed = self.cache.apply(message)
        if changed:
            logger.debug(f"Cache patched by {message.get('type')}")
        return changed

    async def listen(self, topics: Optional[Iterable[str]] = None):
        """Consume broadcasts until the connection closes"""
        topics = list(topics or COLLECTION_TOPICS.values())
        async with self._connect(self.client.websocket_url(topics)) as ws:
            async for raw in ws:
                try:
                    self.handle(raw)
                except ValueError as e:
                    logger.warning(f"Ignoring malformed broadcast: {e}")
