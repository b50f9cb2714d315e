"""
Client-side page cache patched in place by broadcast messages

A client keeps one cached page per collection (the page it is showing).
Broadcasts only ever touch that page: an update for an item on another
page is ignored, and nothing here triggers a fetch. The client sees such
changes when it next fetches a page.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class PageCache:
    """One fetched page of a collection"""
    collection: str
    page: int
    items: List[dict] = field(default_factory=list)
    total: int = 0
    total_pages: int = 0
    limit: int = 0

    @classmethod
    def from_response(cls, collection: str, data: dict) -> "PageCache":
        """Build from a list response such as ``{"events": [...], "total": ...}``"""
        items = data.get(collection, [])
        return cls(
            collection=collection,
            page=data.get("page", 1),
            items=[dict(item) for item in items],
            total=data.get("total", len(items)),
            total_pages=data.get("totalPages", 0),
            limit=data.get("limit") or len(items),
        )

    def find(self, item_id: str) -> Optional[dict]:
        for item in self.items:
            if item.get("id") == item_id:
                return item
        return None


class CollectionCache:
    """Current page per collection plus the broadcast patch protocol"""

    def __init__(self):
        self.pages: Dict[str, PageCache] = {}
        self._handlers: Dict[str, Callable[[dict], bool]] = {
            "eventUpdate": self._apply_event_update,
            "newComment": self._apply_new_comment,
            "newPost": self._apply_new_post,
            "postLiked": self._apply_post_liked,
        }

    def set_page(self, page: PageCache):
        self.pages[page.collection] = page

    def get_page(self, collection: str) -> Optional[PageCache]:
        return self.pages.get(collection)

    def apply(self, message: dict) -> bool:
        """Patch the cached pages; True if anything changed"""
        if not isinstance(message, dict):
            return False
        handler = self._handlers.get(message.get("type"))
        data = message.get("data")
        if handler is None or not isinstance(data, dict):
            return False
        return handler(data)

    def _apply_event_update(self, data: dict) -> bool:
        """Only the count is broadcast, so the cached attendee list is dropped"""
        page = self.pages.get("events")
        if page is None:
            return False
        event = page.find(data.get("eventId"))
        if event is None:
            return False
        event["attendeeCount"] = data.get("attendeeCount", 0)
        event.pop("attendees", None)
        return True

    def _apply_new_comment(self, data: dict) -> bool:
        page = self.pages.get("posts")
        if page is None:
            return False
        post = page.find(data.get("postId"))
        comment = data.get("comment")
        if post is None or not isinstance(comment, dict):
            return False
        post["comments"] = list(post.get("comments", [])) + [comment]
        return True

    def _apply_new_post(self, data: dict) -> bool:
        page = self.pages.get("posts")
        if page is None:
            return False

        page.total += 1
        if page.limit:
            page.total_pages = math.ceil(page.total / page.limit)

        # Newest first, so only the first page shows the new post
        if page.page == 1 and page.find(data.get("id")) is None:
            page.items.insert(0, dict(data))
            if page.limit:
                del page.items[page.limit:]
        return True

    def _apply_post_liked(self, data: dict) -> bool:
        page = self.pages.get("posts")
        if page is None:
            return False
        post = page.find(data.get("postId"))
        if post is None:
            return False
        post["likes"] = data.get("likes", post.get("likes", 0))
        return True
