"""
Redis-backed quiz session store for Quizcraft
"""

import logging
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from quizcraft.core.config import settings
from quizcraft.db.session_store import SessionStore

logger = logging.getLogger(__name__)


class RedisSessionStore(SessionStore):
    """
    Redis session store with graceful fallback.

    Autosave is best effort: while Redis is unreachable reads return nothing
    and writes report False instead of raising.
    """

    def __init__(self, url: Optional[str] = None):
        self.url = url
        self.redis_client: Optional[redis.Redis] = None
        self.is_connected = False

    async def connect(self):
        """Connect to Redis"""
        try:
            self.redis_client = redis.from_url(
                self.url or settings.get_redis_url(),
                encoding="utf-8",
                decode_responses=True,
            )
            await self.redis_client.ping()
            self.is_connected = True
            logger.info("Redis connected successfully")
        except (RedisError, OSError) as e:
            logger.warning(f"Redis connection failed: {e}. Quiz autosave disabled.")
            self.is_connected = False

    async def disconnect(self):
        """Disconnect from Redis"""
        if self.redis_client:
            await self.redis_client.aclose()
            self.is_connected = False

    async def get(self, key: str) -> Optional[str]:
        if not self.is_connected:
            return None
        try:
            return await self.redis_client.get(key)
        except RedisError as e:
            logger.error(f"Redis get error for key {key}: {e}")
            return None

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        if not self.is_connected:
            return False
        try:
            await self.redis_client.set(key, value, ex=ttl or settings.AUTOSAVE_TTL_SECONDS)
            return True
        except RedisError as e:
            logger.error(f"Redis set error for key {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        if not self.is_connected:
            return False
        try:
            await self.redis_client.delete(key)
            return True
        except RedisError as e:
            logger.error(f"Redis delete error for key {key}: {e}")
            return False


# Global session store instance
session_store = RedisSessionStore()
