"""
Change Feed Factory

Returns the in-memory or Redis change feed based on ENV_MODE.

Usage:
    from tableside.services.realtime import get_change_feed

    feed = get_change_feed()
    listener = await feed.listen("orders")
    event = await listener.get()

Environment Switching:
    - ENV_MODE=development → InMemoryChangeFeed (single process)
    - ENV_MODE=staging → RedisChangeFeed
    - ENV_MODE=production → RedisChangeFeed

The order list subscription built on top of the feed lives in
tableside.services.realtime.bridge.
"""

import logging
from functools import lru_cache

from tableside.core.config import get_settings
from tableside.services.realtime.base import (
    BaseChangeFeed,
    ChangeEvent,
    ChangeListener,
    ChangeType,
)
from tableside.services.realtime.memory import InMemoryChangeFeed
from tableside.services.realtime.redis_feed import RedisChangeFeed

logger = logging.getLogger(__name__)

ORDERS_TABLE = "orders"


@lru_cache()
def get_change_feed() -> BaseChangeFeed:
    """
    Get the configured change feed instance.

    The instance is cached so that publishers and listeners in one
    process share the same feed.
    """
    settings = get_settings()

    if settings.use_real_services:
        logger.info(f"Change Feed: Using RedisChangeFeed ({settings.env_mode.value} mode)")
        return RedisChangeFeed()
    logger.info("Change Feed: Using InMemoryChangeFeed (development mode)")
    return InMemoryChangeFeed()


def reset_change_feed() -> None:
    """Clear the cached feed instance."""
    get_change_feed.cache_clear()


__all__ = [
    "get_change_feed",
    "reset_change_feed",
    "BaseChangeFeed",
    "ChangeEvent",
    "ChangeListener",
    "ChangeType",
    "InMemoryChangeFeed",
    "RedisChangeFeed",
    "ORDERS_TABLE",
]
