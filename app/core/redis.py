"""Redis connection shared by the queues, the cache and the rate limiter"""
from typing import Optional

import redis.asyncio as aioredis


class RedisClient:
    """Lazily connected Redis client.

    One instance is created per application and handed to every consumer;
    an already-built client (e.g. a fake in tests) can be injected.
    """

    def __init__(self, url: str = "redis://localhost:6379/0", client: Optional[aioredis.Redis] = None):
        self.url = url
        self._client = client
        self._owns_client = client is None

    async def connect(self) -> aioredis.Redis:
        """Connect to Redis"""
        if self._client is None:
            self._client = aioredis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True,
            )
            self._owns_client = True
        return self._client

    async def disconnect(self):
        """Disconnect from Redis"""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def get_client(self) -> aioredis.Redis:
        """Get Redis client"""
        if self._client is None:
            await self.connect()
        return self._client

    async def ping(self) -> bool:
        client = await self.get_client()
        return bool(await client.ping())
