"""
Broadcast channel for real-time collection updates

Every mutation of events or posts is announced to all connected clients
subscribed to the collection's topic. Delivery is best effort: each
subscriber owns a bounded queue, a full queue drops the message for that
subscriber only, and nothing is stored for clients that connect later.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Set

from ..errors import ValidationError

logger = logging.getLogger(__name__)

TOPICS = ("events", "posts")

EVENT_UPDATE = "eventUpdate"
NEW_COMMENT = "newComment"
NEW_POST = "newPost"
POST_LIKED = "postLiked"


class RelayError(Exception):
    """Raised by a relay when a message could not be handed off"""


def parse_topics(topics: Optional[Iterable[str]]) -> Set[str]:
    """Normalize requested topics, defaulting to every topic"""
    if topics is None:
        return set(TOPICS)
    requested = {t.strip() for t in topics if t and t.strip()}
    if not requested:
        return set(TOPICS)
    unknown = requested - set(TOPICS)
    if unknown:
        raise ValidationError(f"Unknown topics: {', '.join(sorted(unknown))}")
    return requested


@dataclass(eq=False)
class Subscription:
    """A connected client's view of the channel"""
    queue: asyncio.Queue
    topics: Set[str]
    user_id: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    dropped: int = 0

    def offer(self, message: dict) -> bool:
        """Queue a message without waiting; False if it had to be dropped"""
        try:
            self.queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            return False

    async def get(self) -> dict:
        return await self.queue.get()


class Broadcaster:
    """Topic based fan-out to every subscribed client"""

    def __init__(self, queue_size: int = 100, relay=None):
        self.queue_size = queue_size
        self.relay = relay
        self.subscriptions: Dict[str, Subscription] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self.subscriptions)

    async def start(self):
        if self.relay is not None:
            await self.relay.start(self.deliver)

    async def close(self):
        if self.relay is not None:
            await self.relay.stop()
        self.subscriptions.clear()

    def subscribe(self, topics: Optional[Iterable[str]] = None, user_id: Optional[str] = None) -> Subscription:
        subscription = Subscription(
            queue=asyncio.Queue(maxsize=self.queue_size),
            topics=parse_topics(topics),
            user_id=user_id,
        )
        self.subscriptions[subscription.id] = subscription
        logger.info(
            f"Subscriber {subscription.id} joined topics={sorted(subscription.topics)} "
            f"({self.subscriber_count} connected)"
        )
        return subscription

    def unsubscribe(self, subscription: Subscription):
        if self.subscriptions.pop(subscription.id, None) is not None:
            logger.info(f"Subscriber {subscription.id} left ({self.subscriber_count} connected)")

    def build_message(self, topic: str, message_type: str, data: dict) -> dict:
        if topic not in TOPICS:
            raise ValueError(f"Unknown topic: {topic}")
        return {
            "type": message_type,
            "topic": topic,
            "data": data,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def publish(self, topic: str, message_type: str, data: dict) -> dict:
        """Announce a change; never raises on delivery problems"""
        message = self.build_message(topic, message_type, data)

        if self.relay is not None:
            try:
                await self.relay.publish(message)
                return message
            except RelayError as e:
                logger.warning(f"Relay publish failed, delivering locally only: {e}")

        self.deliver(message)
        return message

    def deliver(self, message: dict) -> int:
        """Queue a message for every subscriber of its topic"""
        topic = message.get("topic")
        delivered = 0
        for subscription in list(self.subscriptions.values()):
            if topic not in subscription.topics:
                continue
            if subscription.offer(message):
                delivered += 1
            else:
                logger.warning(
                    f"Subscriber {subscription.id} queue full, dropped {message.get('type')} "
                    f"(total dropped: {subscription.dropped})"
                )
        logger.debug(f"Delivered {message.get('type')} to {delivered} subscribers")
        return delivered
