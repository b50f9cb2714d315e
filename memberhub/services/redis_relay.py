"""Redis pub/sub relay so several API workers share one broadcast channel"""

import asyncio
import json
import logging
from typing import Callable, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from .broadcast import RelayError

logger = logging.getLogger(__name__)


class RedisRelay:
    """Publishes broadcast messages to Redis and feeds received ones back

    Every worker subscribes to the same channel, so a message published by
    any worker reaches the local subscribers of all of them. While the
    listener is down, publish raises RelayError so the broadcaster delivers
    locally instead.
    """

    def __init__(
        self,
        url: str,
        channel: str,
        client: Optional[redis.Redis] = None,
        retry_delay: float = 1.0,
        max_retry_delay: float = 30.0,
    ):
        self.url = url
        self.channel = channel
        self.client = client
        self.retry_delay = retry_delay
        self.max_retry_delay = max_retry_delay
        self.pubsub = None
        self.listening = False
        self._listener: Optional[asyncio.Task] = None

    async def start(self, deliver: Callable[[dict], int]):
        if self.client is None:
            self.client = redis.from_url(self.url, encoding="utf-8", decode_responses=True)
        await self._subscribe()
        self._listener = asyncio.create_task(self._listen(deliver))
        logger.info(f"Redis relay subscribed to {self.channel}")

    async def stop(self):
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        await self._close_pubsub()
        if self.client is not None:
            await self.client.aclose()
            logger.info("Redis relay closed")

    async def publish(self, message: dict):
        # Messages published while this worker cannot hear the channel would
        # never reach its own subscribers
        if not self.listening:
            raise RelayError("Relay listener is not running")
        try:
            await self.client.publish(self.channel, json.dumps(message))
        except (RedisError, OSError) as e:
            raise RelayError(str(e)) from e

    async def _subscribe(self):
        self.pubsub = self.client.pubsub()
        await self.pubsub.subscribe(self.channel)
        self.listening = True

    async def _close_pubsub(self):
        self.listening = False
        if self.pubsub is None:
            return
        pubsub, self.pubsub = self.pubsub, None
        try:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()
        except (RedisError, OSError) as e:
            logger.warning(f"Error closing Redis pubsub: {e}")

    async def _listen(self, deliver: Callable[[dict], int]):
        """Feed channel messages to deliver, resubscribing after failures"""
        delay = self.retry_delay
        while True:
            try:
                if self.pubsub is None:
                    await self._subscribe()
                    logger.info(f"Redis relay resubscribed to {self.channel}")
                    delay = self.retry_delay
                async for item in self.pubsub.listen():
                    if item.get("type") != "message":
                        continue
                    try:
                        message = json.loads(item["data"])
                    except (TypeError, ValueError) as e:
                        logger.warning(f"Ignoring malformed relay message: {e}")
                        continue
                    deliver(message)
                logger.warning("Redis relay subscription ended")
            except (RedisError, OSError) as e:
                logger.error(f"Redis relay listener failed, retrying in {delay}s: {e}")

            await self._close_pubsub()
            await asyncio.sleep(delay)
            delay = min(delay * 2, self.max_retry_delay)
