# backend/concerthall/storage/redis_store.py
"""
Almacén clave-valor sobre Redis.

Cada valor es un string (JSON serializado por las capas superiores). Los
canales de pub/sub de Redis permiten que varias pestañas o workers observen
los cambios del carrito.
"""
import logging
from typing import AsyncIterator, Optional

from redis.asyncio import Redis

from concerthall.core.config import Settings
from concerthall.storage.base import KeyValueStore

logger = logging.getLogger(__name__)


class RedisStore(KeyValueStore):

    def __init__(self, settings: Settings, client: Optional[Redis] = None):
        self.settings = settings
        # Conexión a Redis (se manejará de forma lazy)
        self._client = client

    def _get_redis_client(self) -> Redis:
        """Inicializa y devuelve el cliente de Redis."""
        if self._client is None:
            self._client = Redis.from_url(self.settings.REDIS_URL, decode_responses=True)
            logger.info(f"Cliente Redis configurado en {self.settings.REDIS_HOST}:{self.settings.REDIS_PORT}")
        return self._client

    async def get(self, key: str) -> Optional[str]:
        return await self._get_redis_client().get(key)

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        await self._get_redis_client().set(key, value, ex=ttl)

    async def remove(self, key: str) -> None:
        await self._get_redis_client().delete(key)

    async def add(self, key: str, value: str, ttl: int) -> bool:
        # SET NX EX es atómico en Redis
        return bool(await self._get_redis_client().set(key, value, ex=ttl, nx=True))

    async def publish(self, channel: str, message: str) -> None:
        await self._get_redis_client().publish(channel, message)

    async def subscribe(self, channel: str) -> AsyncIterator[str]:
        pubsub = self._get_redis_client().pubsub()
        await pubsub.subscribe(channel)
        try:
            async for message in pubsub.listen():
                if message.get("type") == "message":
                    yield message["data"]
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
