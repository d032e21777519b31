# backend/concerthall/storage/memory_store.py
"""
Almacén en memoria para desarrollo y tests.

Usamos un diccionario en memoria para simular Redis. Los datos se pierden al
reiniciar el proceso y no se comparten entre workers.
"""
import asyncio
import time
from typing import AsyncIterator, Dict, List, Optional, Tuple

from concerthall.storage.base import KeyValueStore


class MemoryStore(KeyValueStore):

    def __init__(self):
        # clave -> (valor, instante de expiración o None)
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._subscribers: Dict[str, List[asyncio.Queue]] = {}

    def _is_expired(self, key: str) -> bool:
        _, expires_at = self._data[key]
        return expires_at is not None and expires_at <= time.monotonic()

    async def get(self, key: str) -> Optional[str]:
        if key not in self._data:
            return None
        if self._is_expired(key):
            del self._data[key]
            return None
        return self._data[key][0]

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        expires_at = time.monotonic() + ttl if ttl else None
        self._data[key] = (value, expires_at)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def add(self, key: str, value: str, ttl: int) -> bool:
        if await self.get(key) is not None:
            return False
        await self.set(key, value, ttl)
        return True

    async def publish(self, channel: str, message: str) -> None:
        for queue in self._subscribers.get(channel, []):
            queue.put_nowait(message)

    async def subscribe(self, channel: str) -> AsyncIterator[str]:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.setdefault(channel, []).append(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._subscribers[channel].remove(queue)
            if not self._subscribers[channel]:
                del self._subscribers[channel]
