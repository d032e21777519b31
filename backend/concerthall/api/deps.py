"""
Módulo de dependencias para FastAPI.

Este archivo centraliza todas las dependencias que pueden ser inyectadas
en los endpoints de la API. Sigue el patrón de Dependency Injection de FastAPI
para promover código reutilizable y testeable: en los tests se sustituyen el
almacén y los clientes de las APIs externas con `app.dependency_overrides`.
"""

from typing import Optional

from fastapi import Depends

from concerthall.core.config import Settings, settings
from concerthall.services import payment_gateway
from concerthall.services.auth_service import AuthService
from concerthall.services.cart_service import CartService
from concerthall.services.checkout_service import CheckoutService
from concerthall.services.order_api import OrderApiClient
from concerthall.services.payment_result_service import PaymentResultHandler
from concerthall.storage.base import KeyValueStore
from concerthall.storage.client_storage import ClientStorage
from concerthall.storage.memory_store import MemoryStore
from concerthall.storage.redis_store import RedisStore

# Almacén compartido por todas las peticiones (se crea de forma lazy)
_store: Optional[KeyValueStore] = None


def get_settings() -> Settings:
    """
    Dependencia de FastAPI para obtener el objeto de configuración.
    """
    return settings


def build_store(settings: Settings) -> KeyValueStore:
    """Instancia el backend de almacenamiento configurado en `STORAGE_BACKEND`."""
    if settings.STORAGE_BACKEND.lower() == "memory":
        return MemoryStore()
    return RedisStore(settings)


def get_store() -> KeyValueStore:
    global _store
    if _store is None:
        _store = build_store(settings)
    return _store


async def close_store() -> None:
    global _store
    if _store is not None:
        await _store.close()
        _store = None


def get_client_storage(
    store: KeyValueStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> ClientStorage:
    return ClientStorage(store, settings)


def get_cart_service(
    storage: ClientStorage = Depends(get_client_storage),
    settings: Settings = Depends(get_settings),
) -> CartService:
    """
    Dependencia para obtener el servicio de carrito.
    """
    return CartService(settings, storage)


def get_auth_service(
    storage: ClientStorage = Depends(get_client_storage),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    return AuthService(settings, storage)


def get_order_api(settings: Settings = Depends(get_settings)) -> OrderApiClient:
    return OrderApiClient(settings)


def get_payment_gateway(settings: Settings = Depends(get_settings)) -> payment_gateway.PaymentGateway:
    return payment_gateway.get_payment_gateway(settings)


def get_checkout_service(
    storage: ClientStorage = Depends(get_client_storage),
    cart_service: CartService = Depends(get_cart_service),
    auth_service: AuthService = Depends(get_auth_service),
    order_api: OrderApiClient = Depends(get_order_api),
    gateway: payment_gateway.PaymentGateway = Depends(get_payment_gateway),
    settings: Settings = Depends(get_settings),
) -> CheckoutService:
    return CheckoutService(settings, storage, cart_service, auth_service, order_api, gateway)


def get_payment_result_handler(
    checkout_service: CheckoutService = Depends(get_checkout_service),
    settings: Settings = Depends(get_settings),
) -> PaymentResultHandler:
    # En HTTP la redirección la hace el navegador con la cabecera Refresh
    return PaymentResultHandler(settings, checkout_service)
