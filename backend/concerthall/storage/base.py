# backend/concerthall/storage/base.py
"""
Interfaz del almacenamiento clave-valor.

Es el colaborador de persistencia del carrito y del checkout: cualquier
backend que implemente estas operaciones (Redis en producción, memoria en
desarrollo y tests) puede usarse sin cambiar los servicios.
"""
from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional


class KeyValueStore(ABC):
    """Almacén clave-valor asíncrono con valores de texto."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Devuelve el valor guardado o None si no existe o ha expirado."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Guarda el valor. Con `ttl` (segundos) la clave expira sola."""

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Elimina la clave. No falla si no existe."""

    @abstractmethod
    async def add(self, key: str, value: str, ttl: int) -> bool:
        """Guarda el valor solo si la clave no existe. Devuelve True si lo guardó."""

    @abstractmethod
    async def publish(self, channel: str, message: str) -> None:
        """Publica un mensaje para los suscriptores del canal."""

    @abstractmethod
    def subscribe(self, channel: str) -> AsyncIterator[str]:
        """Itera los mensajes publicados en el canal a partir de ahora."""

    async def close(self) -> None:
        """Libera las conexiones del backend, si las hay."""
