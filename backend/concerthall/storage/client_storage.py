# backend/concerthall/storage/client_storage.py
"""
Almacenamiento con espacio de nombres por cliente.

Cada navegador (identificado por `client_id`) tiene sus propias claves bajo
`<prefijo><client_id>:<clave>`. Los valores se guardan como JSON dentro de un
sobre `{"value": ..., "expiry": ...}`:

- Alcance "local": sin expiración, sobrevive a recargas (el carrito).
- Alcance "session": expira tras `SESSION_TTL_SECONDS` (compra directa,
  credencial, sesiones de checkout).
"""
import json
import logging
import math
import time
from typing import Any, AsyncIterator, Optional

from concerthall.core.config import Settings
from concerthall.core.exceptions import IntegrityError
from concerthall.storage.base import KeyValueStore

logger = logging.getLogger(__name__)

LOCAL = "local"
SESSION = "session"


class ClientStorage:

    def __init__(self, store: KeyValueStore, settings: Settings):
        self.store = store
        self.settings = settings

    def _get_key(self, client_id: str, key: str) -> str:
        """Genera la clave completa con el prefijo de la aplicación."""
        return f"{self.settings.STORAGE_PREFIX}{client_id}:{key}"

    def channel(self, client_id: str, key: str) -> str:
        """Canal de notificaciones de cambios de una clave."""
        return f"{self._get_key(client_id, key)}:changes"

    async def get(self, client_id: str, key: str, default: Any = None) -> Any:
        """
        Obtiene un valor. Si no existe o ha expirado, devuelve `default`.
        Lanza IntegrityError si el valor persistido no se puede leer.
        """
        full_key = self._get_key(client_id, key)
        raw_item = await self.store.get(full_key)
        if raw_item is None:
            return default

        try:
            envelope = json.loads(raw_item)
        except (json.JSONDecodeError, TypeError) as e:
            raise IntegrityError(f"Valor corrupto en {full_key}: {e}") from e

        if not isinstance(envelope, dict) or "value" not in envelope:
            raise IntegrityError(f"Sobre de almacenamiento inválido en {full_key}")

        expiry = envelope.get("expiry")
        if expiry is not None:
            if isinstance(expiry, bool) or not isinstance(expiry, (int, float)):
                raise IntegrityError(f"Expiración inválida en {full_key}: {expiry!r}")
            if isinstance(expiry, float) and math.isnan(expiry):
                raise IntegrityError(f"Expiración inválida en {full_key}: {expiry!r}")
            if expiry < time.time():
                await self.store.remove(full_key)
                return default

        return envelope["value"]

    async def set(self, client_id: str, key: str, value: Any, scope: str = LOCAL) -> None:
        """Guarda un valor serializable a JSON en el alcance indicado."""
        full_key = self._get_key(client_id, key)
        envelope = {"value": value}
        ttl: Optional[int] = None
        if scope == SESSION:
            ttl = self.settings.SESSION_TTL_SECONDS
            envelope["expiry"] = time.time() + ttl
        await self.store.set(full_key, json.dumps(envelope, ensure_ascii=False), ttl=ttl)

    async def remove(self, client_id: str, key: str) -> None:
        await self.store.remove(self._get_key(client_id, key))

    async def acquire(self, client_id: str, key: str, ttl: int) -> bool:
        """Marca una clave temporal si no estaba marcada (p. ej. un pago en curso)."""
        return await self.store.add(self._get_key(client_id, key), json.dumps({"value": True}), ttl)

    async def notify(self, client_id: str, key: str, payload: Any) -> None:
        await self.store.publish(self.channel(client_id, key), json.dumps(payload, ensure_ascii=False))

    async def listen(self, client_id: str, key: str) -> AsyncIterator[Any]:
        async for message in self.store.subscribe(self.channel(client_id, key)):
            try:
                yield json.loads(message)
            except json.JSONDecodeError:
                logger.error(f"Notificación ilegible en el canal de {client_id}:{key}")
