# tableorder/services/redis_service.py
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import redis
import redis.asyncio as aioredis
from redis.asyncio.client import PubSub

from tableorder.core.config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    def __init__(self, host: str = settings.REDIS_HOST, port: int = settings.REDIS_PORT):
        self.host = host
        self.port = port
        self._client: Optional[redis.Redis] = None

    def connect(self) -> Optional[redis.Redis]:
        if not self._client:
            try:
                client = redis.Redis(host=self.host, port=self.port, decode_responses=True, socket_connect_timeout=2)
                # Test connection
                client.ping()
                self._client = client
                logger.info(f"Connected to Redis at {self.host}:{self.port}")
            except redis.exceptions.ConnectionError as e:
                logger.warning(f"Failed to connect to Redis: {e}")
                self._client = None
        return self._client

    def disconnect(self) -> None:
        if self._client:
            self._client.close()
            self._client = None
            logger.info("Disconnected from Redis.")

    def publish_message(self, channel: str, message: str) -> bool:
        r = self.connect()
        if not r:
            logger.warning(f"Could not publish on \"{channel}\": Redis client not connected.")
            return False
        try:
            r.publish(channel, message)
        except redis.exceptions.RedisError as e:
            logger.warning(f"Could not publish on \"{channel}\": {e}")
            self._client = None
            return False
        logger.debug(f"Message published on channel \"{channel}\"")
        return True

    @asynccontextmanager
    async def subscription(self, channel: str) -> AsyncIterator[Optional[PubSub]]:
        """Async subscription used by the WebSocket stream; yields None when Redis is unreachable."""
        client = aioredis.Redis(host=self.host, port=self.port, decode_responses=True)
        pubsub = None
        try:
            try:
                await client.ping()
            except redis.exceptions.ConnectionError as e:
                logger.warning(f"Could not subscribe to \"{channel}\": {e}")
                yield None
                return
            pubsub = client.pubsub()
            await pubsub.subscribe(channel)
            logger.info(f"Subscribed to channel \"{channel}\"")
            yield pubsub
        finally:
            if pubsub is not None:
                await pubsub.unsubscribe(channel)
                await pubsub.aclose()
            await client.aclose()


# Global instance used by the application
redis_client = RedisClient()
