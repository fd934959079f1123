"""
Redis Change Feed

Cross-process change notifications over Redis pub/sub. Each table has
its own channel, `{prefix}:{table}`, carrying JSON-encoded ChangeEvents.
Every listener holds its own PubSub connection so that closing one
listener never affects another.
"""

import logging
from typing import Optional

import redis.asyncio as redis

from tableside.core.config import get_settings
from tableside.services.realtime.base import (
    BaseChangeFeed,
    ChangeEvent,
    ChangeListener,
)

logger = logging.getLogger(__name__)


class RedisListener(ChangeListener):

    def __init__(self, pubsub: "redis.client.PubSub", channel: str):
        self._pubsub = pubsub
        self.channel = channel
        self.closed = False

    async def get(self) -> ChangeEvent:
        while True:
            message = await self._pubsub.get_message(
                ignore_subscribe_messages=True, timeout=1.0
            )
            if message is None or message["type"] != "message":
                continue
            try:
                return ChangeEvent.from_json(message["data"])
            except (ValueError, KeyError) as e:
                logger.warning(f"Dropping malformed change event on {self.channel}: {e}")

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self._pubsub.unsubscribe(self.channel)
        await self._pubsub.aclose()


class RedisChangeFeed(BaseChangeFeed):
    """
    Change feed backed by Redis pub/sub.

    Reconnection is left to redis-py; no events are replayed after a
    dropped connection.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        channel_prefix: Optional[str] = None,
    ):
        settings = get_settings()
        self.redis_url = redis_url or settings.redis_url
        self.channel_prefix = channel_prefix or settings.change_feed_channel_prefix
        self._client = redis.from_url(self.redis_url)
        logger.info(f"RedisChangeFeed initialized (prefix={self.channel_prefix})")

    @property
    def provider_name(self) -> str:
        return "redis"

    def channel_for(self, table: str) -> str:
        return f"{self.channel_prefix}:{table}"

    async def publish(self, event: ChangeEvent) -> None:
        receivers = await self._client.publish(
            self.channel_for(event.table), event.to_json()
        )
        logger.debug(
            f"Published {event.event_type.value} {event.table}#{event.record_id} "
            f"to {receivers} subscriber(s)"
        )

    async def listen(self, table: str) -> ChangeListener:
        channel = self.channel_for(table)
        pubsub = self._client.pubsub()
        await pubsub.subscribe(channel)
        return RedisListener(pubsub, channel)

    async def health_check(self) -> bool:
        try:
            return bool(await self._client.ping())
        except redis.RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    async def close(self) -> None:
        await self._client.aclose()
