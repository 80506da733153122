import hashlib
import json
import time
from typing import Any, Dict, Optional, Tuple
from loguru import logger
from redis.asyncio import Redis


def make_cache_key(namespace: str, parts: Dict[str, Any]) -> str:
    payload = json.dumps(sorted(parts.items()), default=str)
    return f"{namespace}:" + hashlib.sha256(payload.encode()).hexdigest()


class ResponseCache:
    """get / set / expire over JSON-compatible payloads. A miss is always None."""
    backend = "none"

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    async def set(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> None:
        raise NotImplementedError

    async def expire(self, key: str) -> None:
        raise NotImplementedError

    async def ping(self) -> bool:
        return True


class MemoryCache(ResponseCache):
    """Single-process key -> (expiry, value) table. No locking: one writer per process."""
    backend = "memory"

    def __init__(self, clock=time.monotonic):
        self._entries: Dict[str, Tuple[float, Dict[str, Any]]] = {}
        self._clock = clock

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        hit = self._entries.get(key)
        if not hit: return None
        expires_at, value = hit
        if self._clock() > expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> None:
        self._entries[key] = (self._clock() + ttl_seconds, value)

    async def expire(self, key: str) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


class RedisCache(ResponseCache):
    backend = "redis"

    def __init__(self, client: Redis):
        self.client = client

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            cached_data = await self.client.get(key)
            if cached_data:
                return json.loads(cached_data)
        except Exception as e:
            logger.warning(f"Redis GET error: {e}")
        return None

    async def set(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> None:
        try:
            await self.client.setex(key, ttl_seconds, json.dumps(value))
        except Exception as e:
            logger.warning(f"Redis SET error: {e}")

    async def expire(self, key: str) -> None:
        try:
            await self.client.delete(key)
        except Exception as e:
            logger.warning(f"Redis DELETE error: {e}")

    async def ping(self) -> bool:
        try:
            await self.client.ping()
            return True
        except Exception as e:
            logger.warning(f"Redis PING error: {e}")
            return False


def build_cache(redis_url: Optional[str]) -> ResponseCache:
    if not redis_url:
        return MemoryCache()
    try:
        client = Redis.from_url(redis_url, decode_responses=True, encoding="utf-8")
        logger.info("Redis cache connection established.")
        return RedisCache(client)
    except Exception as e:
        logger.error(f"Could not initialize Redis, falling back to memory cache. Error: {e}")
        return MemoryCache()
