# backend/concerthall/services/payment_gateway.py
"""
Pasarelas de pago.

La pasarela se elige por configuración (`PAYMENT_GATEWAY`) y se inyecta en
el checkout; no hay estado global. Ambas variantes devuelven el control a la
página de resultado con los parámetros del formato de ECPay:
`MerchantTradeNo` (= número de pedido), `RtnCode` (1 = éxito) y `RtnMsg`.

- MockPaymentGateway: pasarela simulada dentro de la aplicación.
- EcpayPaymentGateway: pide a la API de pagos el formulario de ECPay.
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional, Type
from urllib.parse import urlencode

import httpx

from concerthall.core.config import Settings
from concerthall.core.exceptions import UpstreamError
from concerthall.schemas.payment_schema import PaymentSession, PaymentStatus
from concerthall.services.order_api import raise_for_upstream

logger = logging.getLogger(__name__)

SUCCESS_CODE = "1"
FAILURE_CODE = "0"
DEFAULT_SUCCESS_MESSAGE = "Transacción completada"
DEFAULT_CANCEL_MESSAGE = "Pago cancelado por el usuario"


class PaymentGateway(ABC):
    """Capacidad de pago: crear una sesión de pago y simular el retorno de la pasarela."""

    name = "base"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.transport = transport

    def _get_api_client(self) -> httpx.AsyncClient:
        """Crea un cliente HTTP para comunicarse con la API de pagos."""
        return httpx.AsyncClient(
            base_url=self.settings.PAYMENT_API_BASE_URL,
            timeout=self.settings.HTTP_TIMEOUT_SECONDS,
            transport=self.transport,
        )

    def result_url(self, order_number: str, success: bool, message: Optional[str] = None) -> str:
        """URL de la página de resultado con los parámetros de retorno de la pasarela."""
        params = {
            "MerchantTradeNo": order_number,
            "RtnCode": SUCCESS_CODE if success else FAILURE_CODE,
            "RtnMsg": message or (DEFAULT_SUCCESS_MESSAGE if success else DEFAULT_CANCEL_MESSAGE),
        }
        return f"{self.settings.PAYMENT_RESULT_PATH}?{urlencode(params)}"

    @abstractmethod
    async def create(self, order_number: str, token: str) -> PaymentSession:
        """Crea la sesión de pago del pedido."""

    async def simulate(self, order_number: str, success: bool, message: Optional[str] = None, token: Optional[str] = None) -> str:
        """Simula la respuesta de la pasarela y devuelve la URL de resultado."""
        logger.info(f"Pago simulado del pedido {order_number}: {'éxito' if success else 'fallo'}")
        return self.result_url(order_number, success, message)

    async def status(self, order_number: str, token: str) -> PaymentStatus:
        """Consulta el estado de pago de un pedido en la API de pagos."""
        try:
            async with self._get_api_client() as client:
                response = await client.get(
                    "/payment/status",
                    params={"orderNumber": order_number},
                    headers={"Authorization": f"Bearer {token}"},
                )
        except httpx.HTTPError as e:
            logger.error(f"Fallo de red al consultar el pago de {order_number}: {e}")
            raise UpstreamError("No se pudo contactar con el servicio de pagos") from e

        raise_for_upstream(response, f"consultar el pago del pedido {order_number}")
        data = response.json()
        data.setdefault("orderNumber", order_number)
        return PaymentStatus.model_validate(data)


class MockPaymentGateway(PaymentGateway):
    """Pasarela simulada: la sesión de pago es la pantalla de pago simulada de la aplicación."""

    name = "mock"

    async def create(self, order_number: str, token: str) -> PaymentSession:
        redirect_url = f"{self.settings.MOCK_PAYMENT_PATH}?{urlencode({'orderNumber': order_number})}"
        logger.info(f"Sesión de pago simulada para el pedido {order_number}")
        return PaymentSession(order_number=order_number, redirect_url=redirect_url)


class EcpayPaymentGateway(PaymentGateway):
    """Pasarela ECPay: la API de pagos devuelve un formulario HTML autoenviable o una URL."""

    name = "ecpay"

    async def create(self, order_number: str, token: str) -> PaymentSession:
        try:
            async with self._get_api_client() as client:
                response = await client.post(
                    "/payment/ecpay/create",
                    json={"orderNumber": order_number},
                    headers={"Authorization": f"Bearer {token}"},
                )
        except httpx.HTTPError as e:
            logger.error(f"Fallo de red al crear el pago de {order_number}: {e}")
            raise UpstreamError("No se pudo contactar con el servicio de pagos") from e

        raise_for_upstream(response, f"crear el pago del pedido {order_number}")

        if "application/json" in response.headers.get("content-type", ""):
            data = response.json()
            redirect_url = data.get("redirectUrl") or data.get("paymentUrl")
            form_html = data.get("redirectFormHtml")
            if not (redirect_url or form_html):
                raise UpstreamError("La API de pagos no devolvió ni URL ni formulario")
            return PaymentSession(order_number=order_number, redirect_url=redirect_url, redirect_form_html=form_html)

        if not response.text.strip():
            raise UpstreamError("La API de pagos devolvió un formulario vacío")
        return PaymentSession(order_number=order_number, redirect_form_html=response.text)

    async def simulate(self, order_number: str, success: bool, message: Optional[str] = None, token: Optional[str] = None) -> str:
        # En modo de pruebas de ECPay se avisa al backend antes de volver a la página de resultado
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            async with self._get_api_client() as client:
                response = await client.post(
                    "/payment/ecpay/test-notify",
                    params={"orderNumber": order_number, "success": str(success).lower()},
                    headers=headers,
                )
        except httpx.HTTPError as e:
            logger.error(f"Fallo de red al notificar el pago simulado de {order_number}: {e}")
            raise UpstreamError("No se pudo contactar con el servicio de pagos") from e

        raise_for_upstream(response, f"notificar el pago del pedido {order_number}")
        return await super().simulate(order_number, success, message, token)


GATEWAYS: Dict[str, Type[PaymentGateway]] = {
    MockPaymentGateway.name: MockPaymentGateway,
    EcpayPaymentGateway.name: EcpayPaymentGateway,
}


def get_payment_gateway(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> PaymentGateway:
    """Instancia la pasarela configurada en `PAYMENT_GATEWAY`."""
    try:
        gateway_cls = GATEWAYS[settings.PAYMENT_GATEWAY.lower()]
    except KeyError:
        raise ValueError(f"Pasarela de pago desconocida: {settings.PAYMENT_GATEWAY}")
    return gateway_cls(settings, transport=transport)
