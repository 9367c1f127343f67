import redis.asyncio as redis
from loguru import logger

from recommender.core.config import settings


class RedisService:
    """
    Lazily connected Redis client shared by the recommendation cache.
    Connection and protocol errors are logged and reported as a miss or a failed write.
    """

    def __init__(self, url: str = settings.REDIS_URL, max_connections: int = settings.REDIS_MAX_CONNECTIONS) -> None:
        self.url = url
        self.max_connections = max_connections
        self._client: redis.Redis | None = None

    async def get_client(self) -> redis.Redis:
        if self._client is None:
            if not self.url:
                raise redis.ConnectionError("REDIS_URL is not configured")
            logger.info("Connecting recommendation cache to Redis")
            self._client = redis.from_url(
                self.url,
                decode_responses=True,
                encoding="utf-8",
                socket_connect_timeout=5,
                socket_timeout=5,
                max_connections=self.max_connections,
                health_check_interval=30,
            )
        return self._client

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """Write `value`, expiring after `ttl` seconds when given. False if Redis refused or failed."""
        try:
            client = await self.get_client()
            if ttl is not None:
                return bool(await client.setex(key, ttl, value))
            return bool(await client.set(key, value))
        except (redis.RedisError, OSError) as exc:
            logger.error(f"Redis write failed for '{key}': {exc}")
            return False

    async def get(self, key: str) -> str | None:
        try:
            client = await self.get_client()
            return await client.get(key)
        except (redis.RedisError, OSError) as exc:
            logger.error(f"Redis read failed for '{key}': {exc}")
            return None

    async def delete(self, key: str) -> bool:
        try:
            client = await self.get_client()
            return bool(await client.delete(key))
        except (redis.RedisError, OSError) as exc:
            logger.error(f"Redis delete failed for '{key}': {exc}")
            return False

    async def close(self) -> None:
        if self._client is None:
            return
        try:
            await self._client.aclose()
        finally:
            self._client = None


redis_service = RedisService()
