# backend/concerthall/services/order_api.py
"""
Cliente de la API externa de pedidos.

Todas las llamadas llevan la credencial bearer del usuario. Un 401 es un caso
distinto (CredentialRejectedError); cualquier otra respuesta no 2xx o fallo
de transporte es un UpstreamError que el usuario puede reintentar.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from concerthall.core.config import Settings
from concerthall.core.exceptions import CredentialRejectedError, UpstreamError, ValidationError
from concerthall.schemas.order_schema import Order, OrderCreate

logger = logging.getLogger(__name__)


def _bearer_headers(token: str, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    headers = {"Authorization": f"Bearer {token}"}
    if extra:
        headers.update(extra)
    return headers


def raise_for_upstream(response: httpx.Response, what: str) -> None:
    """Traduce una respuesta no 2xx a las excepciones de dominio."""
    if response.status_code == 401:
        raise CredentialRejectedError(f"Credencial rechazada al {what}")
    if response.is_error:
        logger.error(f"Error HTTP al {what}: {response.status_code} - {response.text}")
        raise UpstreamError(f"No se pudo {what}, inténtalo de nuevo más tarde", status_code=response.status_code)


class OrderApiClient:

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.transport = transport

    def _get_api_client(self) -> httpx.AsyncClient:
        """Crea un cliente HTTP para comunicarse con la API de pedidos."""
        return httpx.AsyncClient(
            base_url=self.settings.ORDER_API_BASE_URL,
            timeout=self.settings.HTTP_TIMEOUT_SECONDS,
            transport=self.transport,
        )

    @staticmethod
    def _parse_order(payload: Any, what: str) -> Order:
        try:
            return Order.model_validate(payload)
        except PydanticValidationError as e:
            logger.error(f"Respuesta inesperada al {what}: {e}")
            raise UpstreamError(f"Respuesta inválida de la API de pedidos al {what}") from e

    async def create_order(self, token: str, items: List[Dict[str, Any]], idempotency_key: Optional[str] = None) -> Order:
        """
        Crea un pedido a partir de las líneas indicadas (`POST /orders`).

        La clave de idempotencia se envía para que un reenvío del mismo checkout
        no cree dos pedidos.
        """
        try:
            order_create = OrderCreate.model_validate({"items": items})
        except PydanticValidationError as e:
            raise ValidationError(f"Los datos del pedido no son válidos: {e.errors()[0]['msg']}") from e
        body = order_create.model_dump(mode="json", by_alias=True, exclude_none=True)
        extra = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        try:
            async with self._get_api_client() as client:
                response = await client.post("/orders", json=body, headers=_bearer_headers(token, extra))
        except httpx.HTTPError as e:
            logger.error(f"Fallo de red al crear el pedido: {e}")
            raise UpstreamError("No se pudo contactar con el servicio de pedidos") from e

        raise_for_upstream(response, "crear el pedido")
        order = self._parse_order(response.json(), "crear el pedido")
        logger.info(f"Pedido {order.order_number} creado ({len(order.items)} líneas, total {order.total_amount})")
        return order

    async def get_order(self, token: str, order_number: str) -> Order:
        """Obtiene un pedido por su número (`GET /orders/{orderNumber}`)."""
        try:
            async with self._get_api_client() as client:
                response = await client.get(f"/orders/{order_number}", headers=_bearer_headers(token))
        except httpx.HTTPError as e:
            logger.error(f"Fallo de red al obtener el pedido {order_number}: {e}")
            raise UpstreamError("No se pudo contactar con el servicio de pedidos") from e

        raise_for_upstream(response, f"cargar el pedido {order_number}")
        return self._parse_order(response.json(), f"cargar el pedido {order_number}")
