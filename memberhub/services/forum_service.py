"""Forum posts and append-only comments"""

import logging
from typing import Dict, Optional

from ..auth.identity import Identity
from ..errors import NotFoundError
from ..models.post import CommentCreate, PostCreate
from .broadcast import NEW_COMMENT, NEW_POST, POST_LIKED, Broadcaster
from .database import Database
from .locks import KeyedLocks
from .member_service import MemberService

logger = logging.getLogger(__name__)


class ForumService:
    """Stores posts with raw author uids and serves them resolved

    Comments and likes on one post are serialized, and their broadcasts are
    published in write order, within this process only.
    """

    def __init__(
        self,
        db: Database,
        broadcaster: Broadcaster,
        members: MemberService,
        locks: KeyedLocks = None,
    ):
        self.db = db
        self.broadcaster = broadcaster
        self.members = members
        self.locks = locks or KeyedLocks()

    # =========================================================================
    # Resolution helpers
    # =========================================================================

    def resolve_comment(self, comment: dict, authors: Optional[Dict[str, dict]] = None) -> dict:
        if authors is None:
            authors = self.members.resolve_authors([comment["author"]])
        return {**comment, "author": authors[comment["author"]]}

    def resolve_post(self, post: dict, authors: Optional[Dict[str, dict]] = None) -> dict:
        if authors is None:
            uids = {post["author"]} | {c["author"] for c in post.get("comments", [])}
            authors = self.members.resolve_authors(uids)
        return {
            **post,
            "author": authors[post["author"]],
            "comments": [self.resolve_comment(c, authors) for c in post.get("comments", [])],
        }

    # =========================================================================
    # Operations
    # =========================================================================

    def list_posts(self, page: int, limit: int) -> dict:
        posts, total, total_pages = self.db.page(
            "posts", page, limit, sort_key=lambda p: p.get("createdAt") or "", reverse=True,
        )

        uids = set()
        for post in posts:
            uids.add(post["author"])
            uids.update(c["author"] for c in post.get("comments", []))
        authors = self.members.resolve_authors(uids)

        return {
            "posts": [self.resolve_post(p, authors) for p in posts],
            "total": total,
            "totalPages": total_pages,
            "page": page,
            "limit": limit,
        }

    def get_post(self, post_id: str) -> dict:
        post = self.db.get("posts", post_id)
        if not post:
            raise NotFoundError("Post not found")
        return self.resolve_post(post)

    async def create_post(self, data: PostCreate, identity: Identity) -> dict:
        post = {
            "id": self.db.generate_id(),
            **data.to_document(),
            "author": identity.subject,
            "createdAt": self.db.timestamp(),
            "likes": 0,
            "comments": [],
        }
        self.db.insert("posts", post)
        logger.info(f"Post {post['id']} created by {identity.subject}")

        resolved = self.resolve_post(post)
        await self.broadcaster.publish("posts", NEW_POST, resolved)
        return resolved

    async def create_comment(self, post_id: str, data: CommentCreate, identity: Identity) -> dict:
        """Append a comment.

        The caller gets the comment as stored (author is the raw uid);
        broadcast listeners get the re-read comment with its author resolved.
        """
        async with self.locks.hold(post_id):
            post = self.db.get("posts", post_id)
            if not post:
                raise NotFoundError("Post not found")

            comment = {
                "author": identity.subject,
                "content": data.content,
                "createdAt": self.db.timestamp(),
            }
            comments = list(post.get("comments", []))
            comments.append(comment)
            if self.db.update("posts", post_id, {"comments": comments}) is None:
                raise NotFoundError("Post not found")

            stored = self.db.get("posts", post_id)

            logger.info(f"Comment added to post {post_id} by {identity.subject}")
            resolved = self.resolve_comment(stored["comments"][-1])
            await self.broadcaster.publish("posts", NEW_COMMENT, {"postId": post_id, "comment": resolved})

        return comment

    async def like_post(self, post_id: str) -> dict:
        async with self.locks.hold(post_id):
            post = self.db.get("posts", post_id)
            if not post:
                raise NotFoundError("Post not found")

            updated = self.db.update("posts", post_id, {"likes": post.get("likes", 0) + 1})
            if updated is None:
                raise NotFoundError("Post not found")

            await self.broadcaster.publish("posts", POST_LIKED, {"postId": post_id, "likes": updated["likes"]})

        return self.resolve_post(updated)
